"""
Connection resolution for dbtool.

Commands run locally, on a remote host through ssh, or inside a docker
container through docker exec. The resolved Connection wraps any inner
command accordingly.
"""

import logging
import shlex
from dataclasses import replace
from typing import Callable, Sequence

from .exceptions import ContainerNotFoundError
from .models import CommandResult, ConnectionSpec, MysqlCredentials, Transport
from .process import run_command

Runner = Callable[..., CommandResult]

COMPOSE_PREFIX = "compose:"
ROOT_PASSWORD_VARIABLE = "MYSQL_ROOT_PASSWORD"


class Connection:
    """Prefixes inner commands with the configured transport."""

    def __init__(self, spec: ConnectionSpec):
        self.spec = spec

    @property
    def transport(self) -> Transport:
        return self.spec.transport

    def wrap_command(self, args: Sequence[str]) -> list[str]:
        """Wrap a plain argument list."""
        if self.transport == Transport.SSH:
            return ["ssh", self.spec.host, " ".join(shlex.quote(arg) for arg in args)]
        if self.transport == Transport.DOCKER:
            return ["docker", "exec", "-i", self.spec.container, *args]
        return list(args)

    def wrap_shell(self, script: str) -> list[str]:
        """Wrap a shell pipeline so it is interpreted by bash on the target.

        The pipeline runs with pipefail, so a failure in any stage is the
        exit status of the whole command. A target without bash fails.
        """
        return self.wrap_command(["bash", "-o", "pipefail", "-c", script])

    def __repr__(self) -> str:
        return f"Connection({self.transport.value}, host={self.spec.host!r}, container={self.spec.container!r})"


def find_container_id(container: str, runner: Runner = run_command) -> str:
    """Resolve a container name, id or compose:<service> to a container id."""
    if container.startswith(COMPOSE_PREFIX):
        service = container[len(COMPOSE_PREFIX):]
        args = ["docker", "compose", "ps", "-q", service]
    else:
        args = ["docker", "inspect", "--format", "{{.Id}}", container]

    result = runner(args, check=False)
    lines = result.stdout.split()
    if not result.success or not lines:
        raise ContainerNotFoundError(container)
    return lines[0]


def get_container_env(container_id: str, runner: Runner = run_command) -> dict[str, str]:
    """Read the environment variables a container was started with."""
    result = runner([
        "docker", "inspect",
        "-f", "{{range .Config.Env}}{{println .}}{{end}}",
        container_id
    ])

    env = {}
    for line in result.stdout.splitlines():
        name, sep, value = line.partition("=")
        if sep:
            env[name] = value
    return env


def resolve_connection(
    spec: ConnectionSpec,
    credentials: MysqlCredentials,
    runner: Runner = run_command
) -> tuple[Connection, MysqlCredentials]:
    """Resolve a requested transport into a usable Connection.

    For docker the container is looked up and, when the caller supplied
    neither user nor password, root credentials are taken from the
    container's MYSQL_ROOT_PASSWORD.

    Returns:
        The connection and the credentials to use with it.
    """
    if spec.transport == Transport.SSH:
        logging.info(f" - Using ssh connection \"{spec.host}\"")
        return Connection(spec), credentials

    if spec.transport == Transport.DOCKER:
        container_id = find_container_id(spec.container, runner)
        logging.info(f" - Using docker container \"{container_id}\"")

        env = get_container_env(container_id, runner)
        if ROOT_PASSWORD_VARIABLE in env and not credentials.has_user_or_password:
            logging.debug(f"Using root credentials from {ROOT_PASSWORD_VARIABLE}")
            credentials = credentials.with_docker_root(env[ROOT_PASSWORD_VARIABLE])

        return Connection(replace(spec, container=container_id)), credentials

    return Connection(spec), credentials
