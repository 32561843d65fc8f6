"""Parsers turning orchestrator config files into service ports.

Two declaration styles are understood:

- Marathon app definitions (JSON) list their mappings under
  ``container.docker.portMappings``.
- Docker compose files (YAML) declare ``ports`` per service, in either the
  short string syntax or the long mapping syntax.

Parsing is fail-fast: the first malformed entry raises
:class:`InvalidFormatError` naming the offending file and value.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from ..errors import InvalidFormatError
from .models import Protocol, ServicePort

logger = logging.getLogger(__name__)

MARATHON_PORT_MAPPINGS_PATH = ("container", "docker", "portMappings")

# Adapted from docker-py's ``docker/utils/ports.py``.
PORT_SPEC_PATTERN = re.compile(
    r"^"                                            # Match full string
    r"("                                            # External part
    r"((?P<host>[a-fA-F\d.:]+):)?"                  # Address
    r"(?P<ext>\d*)(-(?P<ext_end>\d+))?:"            # External range
    r")?"
    r"(?P<int>\d+)(-(?P<int_end>\d+))?"             # Internal range
    r"(?P<proto>/(udp|tcp))?"                       # Protocol
    r"$"
)


@dataclass
class ConfigSource:
    """Raw content of one config file plus the label used in messages."""

    path: str
    content: Union[bytes, str]

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ConfigSource":
        file_path = Path(path)
        return cls(path=str(file_path), content=file_path.read_bytes())

    def text(self) -> str:
        if isinstance(self.content, bytes):
            try:
                return self.content.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise InvalidFormatError(f"file is not valid UTF-8: {exc}", self.path) from exc
        return self.content


def _to_port(value: str, definition: str, source: Optional[str]) -> int:
    port = int(value)
    if port > 65535:
        raise InvalidFormatError(f"port {port} out of range in '{definition}'", source)
    return port


def parse_port_short_syntax(definition: str, source: Optional[str] = None) -> List[ServicePort]:
    """Expand ``[[host:]ext[-extEnd]:]int[-intEnd][/proto]`` into ports.

    ``"80:8080"`` publishes container port 8080 on 80, ``"8080-8081"``
    publishes both ports on themselves.
    """
    match = PORT_SPEC_PATTERN.match(definition.strip())
    if not match:
        raise InvalidFormatError(f"invalid port definition '{definition}'", source)

    internal = _to_port(match.group("int"), definition, source)
    internal_end = internal
    if match.group("int_end") is not None:
        internal_end = _to_port(match.group("int_end"), definition, source)

    # An empty external part ("127.0.0.1::80") publishes on the container port.
    external = internal
    if match.group("ext"):
        external = _to_port(match.group("ext"), definition, source)

    if match.group("ext_end") is not None:
        external_end = _to_port(match.group("ext_end"), definition, source)
    elif internal_end == internal:
        external_end = external
    else:
        external_end = internal_end

    protocol = Protocol.UDP if match.group("proto") == "/udp" else Protocol.TCP

    if internal_end < internal or external_end < external:
        raise InvalidFormatError(f"port range is reversed in '{definition}'", source)
    if external_end - external != internal_end - internal:
        raise InvalidFormatError(
            f"published and target port ranges differ in length in '{definition}'", source
        )

    return [
        ServicePort(port, internal + port - external, protocol)
        for port in range(external, external_end + 1)
    ]


def _require_int(node: Dict[str, Any], key: str, source: Optional[str]) -> int:
    value = node.get(key)
    if value is None or isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFormatError(
            f"long port syntax requires an integer '{key}', got {value!r} in {node!r}", source
        )
    if not 0 <= value <= 65535:
        raise InvalidFormatError(f"port {value} out of range in {node!r}", source)
    return value


def parse_port_long_syntax(node: Dict[str, Any], source: Optional[str] = None) -> List[ServicePort]:
    """Parse a ``{target, published, protocol?}`` mapping."""
    target = _require_int(node, "target", source)
    published = _require_int(node, "published", source)
    protocol_node = node.get("protocol")
    protocol = Protocol.parse(protocol_node) if isinstance(protocol_node, str) else Protocol.TCP
    return [ServicePort(published, target, protocol)]


def _compose_services(root: Any, source: str) -> Dict[str, Any]:
    if root is None:
        return {}
    if not isinstance(root, dict):
        raise InvalidFormatError("compose document must be a mapping", source)

    # Files without a version are the legacy format with services at the root.
    # https://docs.docker.com/compose/compose-file/compose-versioning/
    if "version" not in root:
        return root

    services = root.get("services")
    if services is None:
        raise InvalidFormatError("node 'services' not found", source)
    if not isinstance(services, dict):
        raise InvalidFormatError("node 'services' must be a mapping", source)
    return services


def parse_compose_ports(config: ConfigSource) -> List[ServicePort]:
    """Collect the published ports of every service in a compose file."""
    try:
        root = yaml.safe_load(config.text())
    except yaml.YAMLError as exc:
        raise InvalidFormatError(f"invalid YAML: {exc}", config.path) from exc

    service_ports: List[ServicePort] = []
    for name, service in _compose_services(root, config.path).items():
        if not isinstance(service, dict):
            continue
        ports = service.get("ports")
        if not isinstance(ports, list):
            continue

        for entry in ports:
            if isinstance(entry, str):
                service_ports.extend(parse_port_short_syntax(entry, config.path))
            elif isinstance(entry, dict):
                service_ports.extend(parse_port_long_syntax(entry, config.path))
            else:
                raise InvalidFormatError(
                    f"invalid port definition {entry!r} for service '{name}'", config.path
                )
    logger.debug("Parsed %d service ports from %s", len(service_ports), config.path)
    return service_ports


def parse_marathon_ports(config: ConfigSource) -> List[ServicePort]:
    """Read ``container.docker.portMappings`` from a Marathon app definition."""
    try:
        node: Any = json.loads(config.text())
    except json.JSONDecodeError as exc:
        raise InvalidFormatError(f"invalid JSON: {exc}", config.path) from exc

    visited = []
    for key in MARATHON_PORT_MAPPINGS_PATH:
        visited.append(key)
        if not isinstance(node, dict) or node.get(key) is None:
            raise InvalidFormatError(f"node '{'.'.join(visited)}' not found", config.path)
        node = node[key]

    if not isinstance(node, list):
        raise InvalidFormatError("node 'container.docker.portMappings' must be a list", config.path)

    service_ports: List[ServicePort] = []
    for element in node:
        if not isinstance(element, dict):
            raise InvalidFormatError(f"invalid port mapping {element!r}", config.path)
        container_port = _mapping_port(element, "containerPort", config.path)
        host_port = _mapping_port(element, "hostPort", config.path)
        protocol = Protocol.parse(element.get("protocol"))
        service_ports.append(ServicePort(host_port, container_port, protocol))
    return service_ports


def _mapping_port(element: Dict[str, Any], key: str, source: str) -> int:
    value = element.get(key)
    if value is None:
        raise InvalidFormatError(
            f"node 'container.docker.portMappings[].{key}' not found", source
        )
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidFormatError(f"invalid {key} {value!r}", source) from exc
    if not 0 <= port <= 65535:
        raise InvalidFormatError(f"{key} {port} out of range", source)
    return port


def parse_all(parse, configs: Iterable[ConfigSource]) -> List[ServicePort]:
    """Apply ``parse`` to every source, concatenating the results."""
    service_ports: List[ServicePort] = []
    for config in configs:
        service_ports.extend(parse(config))
    return service_ports
