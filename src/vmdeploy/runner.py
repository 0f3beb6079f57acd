"""
Command execution on the Proxmox host.

LocalRunner runs commands with subprocess on this machine. RemoteRunner runs
the same argv over SSH with paramiko on a PVE node. Both are quiet by
default and echo captured output when verbose.
"""

import logging
import os
import shlex
import subprocess
import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence

import paramiko
import requests
from rich.progress import BarColumn, DownloadColumn, Progress, TextColumn, TransferSpeedColumn

from vmdeploy.exceptions import CommandError, DownloadError, RemoteConnectionError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


@dataclass
class CommandResult:
    """Captured result of a finished command."""

    argv: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        """stdout and stderr combined, like ``2>&1``."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Base class for running commands where qm lives."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def _execute(self, argv: List[str]) -> CommandResult:
        raise NotImplementedError

    def run(self, argv: Sequence[str], check: bool = True) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            argv: Command and arguments
            check: Raise CommandError on a non-zero exit status

        Returns:
            CommandResult with captured output
        """
        args = [str(a) for a in argv]
        logger.debug(f"Running: {shlex.join(args)}")
        result = self._execute(args)

        if self.verbose:
            if result.stdout:
                print(result.stdout)
            if result.stderr:
                print(result.stderr, file=sys.stderr)

        if check and not result.ok:
            raise CommandError(result)
        return result

    def is_file(self, path: str) -> bool:
        raise NotImplementedError

    def is_dir(self, path: str) -> bool:
        raise NotImplementedError

    def makedirs(self, path: str) -> None:
        raise NotImplementedError

    def download(self, url: str, dest: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self) -> "CommandRunner":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class LocalRunner(CommandRunner):
    """Runs commands on this machine."""

    def __init__(self, verbose: bool = False, download_timeout: int = 60) -> None:
        super().__init__(verbose)
        self.download_timeout = download_timeout

    def _execute(self, argv: List[str]) -> CommandResult:
        try:
            proc = subprocess.run(argv, capture_output=True, text=True)
        except FileNotFoundError:
            return CommandResult(argv, 127, "", f"{argv[0]}: command not found")
        return CommandResult(argv, proc.returncode, proc.stdout.strip(), proc.stderr.strip())

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def makedirs(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)

    def download(self, url: str, dest: str) -> None:
        """Stream url to dest; a partial file is removed if the download fails."""
        try:
            self._stream(url, dest)
        except (requests.RequestException, OSError) as e:
            if os.path.exists(dest):
                os.remove(dest)
            raise DownloadError(f"Failed to download {url}: {e}") from e

    def _stream(self, url: str, dest: str) -> None:
        response = requests.get(url, stream=True, timeout=self.download_timeout)
        response.raise_for_status()
        total = int(response.headers.get("content-length", 0)) or None

        with open(dest, "wb") as image_file:
            if not self.verbose:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        image_file.write(chunk)
                return

            with Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                DownloadColumn(),
                TransferSpeedColumn(),
            ) as progress:
                task = progress.add_task(os.path.basename(dest), total=total)
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        image_file.write(chunk)
                        progress.update(task, advance=len(chunk))


class RemoteRunner(CommandRunner):
    """Runs commands on a Proxmox host over SSH."""

    def __init__(
        self,
        host: str,
        user: str = "root",
        key_path: Optional[str] = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(verbose)
        self.host = host
        self.user = user
        self.key_path = os.path.expanduser(key_path) if key_path else None
        self._ssh: Optional[paramiko.SSHClient] = None

    def _client(self) -> paramiko.SSHClient:
        if self._ssh is None:
            logger.info(f"Connecting to {self.user}@{self.host}")
            ssh = paramiko.SSHClient()
            ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            try:
                ssh.connect(hostname=self.host, username=self.user, key_filename=self.key_path)
            except (paramiko.SSHException, OSError) as e:
                ssh.close()
                raise RemoteConnectionError(f"Cannot connect to {self.user}@{self.host}: {e}") from e
            self._ssh = ssh
        return self._ssh

    def _execute(self, argv: List[str]) -> CommandResult:
        client = self._client()
        try:
            stdin, stdout, stderr = client.exec_command(shlex.join(argv))
            out = stdout.read().decode().strip()
            err = stderr.read().decode().strip()
            returncode = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            self.close()
            raise RemoteConnectionError(f"SSH session to {self.user}@{self.host} failed: {e}") from e
        return CommandResult(argv, returncode, out, err)

    def is_file(self, path: str) -> bool:
        return self.run(["test", "-f", path], check=False).ok

    def is_dir(self, path: str) -> bool:
        return self.run(["test", "-d", path], check=False).ok

    def makedirs(self, path: str) -> None:
        self.run(["mkdir", "-p", path])

    def download(self, url: str, dest: str) -> None:
        """Fetch url with wget on the host; wget -O leaves dest behind on failure, so remove it."""
        progress = ["--show-progress"] if self.verbose else []
        try:
            self.run(["wget", "-q", *progress, "-O", dest, url])
        except CommandError as e:
            self.run(["rm", "-f", dest], check=False)
            raise DownloadError(f"Failed to download {url}: {e}") from e

    def close(self) -> None:
        if self._ssh is not None:
            self._ssh.close()
            self._ssh = None
