import unittest

from cluster_deployer.ssh import (
    RemoteCommandError,
    SSHCredentials,
    SSHSession,
    escape_single_quote,
)


class FakeChannel:
    def __init__(self, status: int = 0) -> None:
        self._status = status

    def recv_exit_status(self) -> int:
        return self._status


class FakeStream:
    def __init__(self, data: str, status: int = 0) -> None:
        self._data = data.encode("utf-8")
        self.channel = FakeChannel(status)

    def read(self) -> bytes:
        return self._data


class FakeSFTP:
    def __init__(self, files) -> None:
        self.files = files
        self.closed = False

    def putfo(self, handle, remote_path) -> None:
        self.files[remote_path] = handle.read()

    def close(self) -> None:
        self.closed = True


class FakeSSHClient:
    def __init__(self) -> None:
        self.connected = False
        self.closed = False
        self.commands: list[str] = []
        self.files: dict = {}
        self.exit_status = 0

    def set_missing_host_key_policy(self, policy) -> None:  # pragma: no cover - noop
        self.policy = policy

    def connect(self, **kwargs) -> None:
        self.connected = True
        self.kwargs = kwargs

    def exec_command(self, command: str, timeout=None):
        self.commands.append(command)
        if self.exit_status:
            return (None, FakeStream("", self.exit_status), FakeStream("not found"))
        return (None, FakeStream("ok\n", self.exit_status), FakeStream(""))

    def open_sftp(self) -> FakeSFTP:
        return FakeSFTP(self.files)

    def close(self) -> None:
        self.closed = True


class SSHSessionTests(unittest.TestCase):
    def _session(self, client: FakeSSHClient) -> SSHSession:
        credentials = SSHCredentials(host="master.example.com", username="azureuser", port=2200, key_path="/k")
        return SSHSession(credentials, client_factory=lambda: client)  # type: ignore[arg-type]

    def test_run_command_uses_client_factory(self) -> None:
        client = FakeSSHClient()
        with self._session(client) as session:
            result = session.run("echo test")
        self.assertTrue(result.ok)
        self.assertEqual(result.stdout, "ok")
        self.assertEqual(client.kwargs["port"], 2200)
        self.assertEqual(client.kwargs["key_filename"], "/k")
        self.assertTrue(client.closed)

    def test_execute_raises_on_failure(self) -> None:
        client = FakeSSHClient()
        client.exit_status = 2
        with self._session(client) as session:
            with self.assertRaises(RemoteCommandError) as ctx:
                session.execute("kubectl apply -f x")
        self.assertEqual(ctx.exception.result.exit_status, 2)
        self.assertIn("not found", str(ctx.exception))

    def test_copy_to_uploads_bytes(self) -> None:
        client = FakeSSHClient()
        with self._session(client) as session:
            session.copy_to(b"payload", "acsDep1.json")
        self.assertEqual(client.files, {"acsDep1.json": b"payload"})

    def test_password_credentials_require_password(self) -> None:
        credentials = SSHCredentials(host="h", username="u", auth_method="password")
        with self.assertRaises(ValueError):
            credentials.validate()


class EscapeTests(unittest.TestCase):
    def test_escape_single_quote(self) -> None:
        self.assertEqual(escape_single_quote("let's go"), "let'\"'\"'s go")
        self.assertEqual(escape_single_quote("plain"), "plain")


if __name__ == "__main__":
    unittest.main()
