"""Main entry point for db-console"""

import argparse
import importlib
import inspect
import logging
import sys
from enum import IntEnum
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from rich.console import Console

from .backend import Backend, BackendError
from .command import ReplError
from .config import ConsoleConfig, get_config_dir
from .console import CommandError, create_context, execute_command_list, execute_interactive, execute_scripts
from .memory_backend import MemoryBackend, is_memory_address
from .printer import println_error
from .runtime import BackgroundRuntime
from .sources import SourceError

logger = logging.getLogger(__name__)

PACKAGE_NAME = "db-console"


class ExitCode(IntEnum):
    SUCCESS = 0
    GENERAL_ERROR = 1
    COMMAND_ERROR = 2
    CONNECTION_ERROR = 3
    USER_INPUT_ERROR = 4
    QUERY_ERROR = 5


class UserInputError(Exception):
    """Invalid or missing command-line input"""


def get_version() -> str:
    try:
        return version(PACKAGE_NAME)
    except PackageNotFoundError:
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="db-console",
        description="Interactive console for a remote database server.",
    )
    address_group = parser.add_mutually_exclusive_group()
    address_group.add_argument("--address", help="Server address to connect to (HOST:PORT, or 'memory').")
    address_group.add_argument("--addresses", help="Comma-separated server addresses to connect to.")
    address_group.add_argument(
        "--address-translation",
        help="Comma-separated public=private address pairs, for servers behind address translation.",
    )
    parser.add_argument("--username", help="Username for authentication.")
    parser.add_argument("--password", help="Password for authentication. Prompted for when omitted.")
    parser.add_argument("--tls-disabled", action="store_true", default=None, help="Disable TLS for the connection.")
    parser.add_argument("--tls-root-ca", help="Path to a custom root CA certificate for TLS.")
    parser.add_argument(
        "--replication-disabled",
        action="store_true",
        default=None,
        help="Connect to the given address only, without discovering other replicas.",
    )
    parser.add_argument("--backend", help="Backend factory as 'module:function', used for non-memory addresses.")
    parser.add_argument("--config-dir", help="Configuration directory (default: ~/.db-console).")
    parser.add_argument("--log-level", help="Logging level (default: WARNING).")
    parser.add_argument(
        "--command",
        action="append",
        default=[],
        help="Execute a console command and exit. May be given more than once.",
    )
    parser.add_argument(
        "--script",
        action="append",
        default=[],
        help="Execute the commands in a script file and exit. May be given more than once.",
    )
    parser.add_argument("--version", action="store_true", help="Print the version and exit.")
    return parser


def parse_address_translation(value: str) -> dict[str, str]:
    translation = {}
    for pair in value.split(","):
        public_address, separator, private_address = pair.partition("=")
        if not separator or not public_address.strip() or not private_address.strip():
            raise UserInputError(f"invalid address pair '{pair}', must be of form '<public=private,...>'.")
        translation[public_address.strip()] = private_address.strip()
    return translation


def parse_addresses(value: str) -> list[str]:
    addresses = [address.strip() for address in value.split(",") if address.strip()]
    if not addresses:
        raise UserInputError(f"invalid addresses '{value}'.")
    return addresses


def load_config(args: argparse.Namespace) -> tuple[ConsoleConfig, Path]:
    config_dir = get_config_dir(args.config_dir)
    config = ConsoleConfig.from_env(config_dir).with_overrides(
        address=args.address,
        addresses=parse_addresses(args.addresses) if args.addresses else None,
        address_translation=parse_address_translation(args.address_translation) if args.address_translation else None,
        username=args.username,
        password=args.password,
        tls_disabled=args.tls_disabled,
        tls_root_ca=args.tls_root_ca,
        replication_disabled=args.replication_disabled,
        backend=args.backend,
        log_level=args.log_level,
    )
    return config, config_dir


def setup_logging(level_name: str):
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def load_backend_factory(target: str):
    """Resolve 'module:function' to the factory callable"""
    module_name, separator, attribute = target.partition(":")
    if not separator or not module_name or not attribute:
        raise UserInputError(f"invalid backend '{target}', must be of form 'module:function'.")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise UserInputError(f"could not import backend module '{module_name}': {e}") from e
    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise UserInputError(f"backend module '{module_name}' has no attribute '{attribute}'.") from e


def connect(config: ConsoleConfig, runtime: BackgroundRuntime) -> Backend:
    """Open the backend connection described by the configuration

    Raises:
        UserInputError: the configuration does not say how to connect
        BackendError: the server could not be reached or refused the credentials
    """
    settings = config.to_connection_settings()
    if not settings.addresses:
        raise UserInputError(
            "missing server address (at least one of --address, --addresses, or --address-translation must be provided)."
        )

    if is_memory_address(settings.addresses[0]):
        return runtime.run(MemoryBackend.connect(settings))

    if not config.backend:
        raise UserInputError(
            f"no backend available for '{settings.addresses[0]}': pass --backend 'module:function' "
            "or use --address memory."
        )
    factory = load_backend_factory(config.backend)
    backend = factory(settings)
    if inspect.isawaitable(backend):
        backend = runtime.run(backend)
    return backend


def exit_code_for(error: BaseException) -> ExitCode:
    """Map a failure to the process exit code"""
    cause = error.__cause__ if isinstance(error, CommandError) else error
    if cause is None:
        return ExitCode.COMMAND_ERROR
    if isinstance(cause, BackendError):
        return ExitCode.QUERY_ERROR
    if isinstance(cause, SourceError | OSError):
        return ExitCode.GENERAL_ERROR
    if isinstance(cause, ReplError):
        return ExitCode.COMMAND_ERROR
    if isinstance(cause, UserInputError):
        return ExitCode.USER_INPUT_ERROR
    return ExitCode.GENERAL_ERROR


def run(argv: list[str] | None = None, console: Console | None = None, error_console: Console | None = None) -> int:
    """Run the console and return its exit code"""
    args = build_parser().parse_args(argv)
    console = console or Console()
    error_console = error_console or Console(stderr=True)

    if args.version:
        console.print(get_version())
        return ExitCode.SUCCESS

    try:
        config, config_dir = load_config(args)
    except UserInputError as e:
        println_error(error_console, str(e))
        return ExitCode.USER_INPUT_ERROR
    setup_logging(config.log_level)

    if args.command and args.script:
        println_error(error_console, "cannot specify both commands and files")
        return ExitCode.USER_INPUT_ERROR
    if not config.username:
        println_error(error_console, "username is required for connection authentication ('--username <username>').")
        return ExitCode.USER_INPUT_ERROR
    if config.password is None:
        from .line_reader import read_hidden

        try:
            password = read_hidden(f"password for '{config.username}': ")
        except (EOFError, KeyboardInterrupt):
            return ExitCode.USER_INPUT_ERROR
        config = config.model_copy(update={"password": password})

    with BackgroundRuntime() as runtime:
        try:
            backend = connect(config, runtime)
        except UserInputError as e:
            println_error(error_console, str(e))
            return ExitCode.USER_INPUT_ERROR
        except (BackendError, OSError) as e:
            hints = ""
            if not config.tls_disabled:
                hints += "\nVerify that the server is also configured with TLS encryption."
            if config.replication_disabled:
                hints += (
                    "\nVerify that the connection address is **exactly** the same as the server address "
                    "specified in its config."
                )
            println_error(error_console, f"Failed to create a connection to the server. {e}{hints}")
            return ExitCode.CONNECTION_ERROR

        context = create_context(
            backend,
            runtime,
            config=config,
            config_dir=config_dir,
            console=console,
            error_console=error_console,
        )
        try:
            if args.command:
                execute_command_list(context, args.command)
            elif args.script:
                execute_scripts(context, args.script)
            else:
                execute_interactive(context)
        except (CommandError, OSError) as e:
            if not isinstance(e, CommandError):
                println_error(error_console, str(e))
            return exit_code_for(e)
        finally:
            context.exit_all()
            try:
                runtime.run(backend.close())
            except BackendError as e:
                logger.warning("Error closing the connection: %s", e)

    return ExitCode.SUCCESS


def main():
    """Main entry point"""
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        print("\nShutting down...")
        sys.exit(ExitCode.GENERAL_ERROR)


if __name__ == "__main__":
    main()
