import click
import logging
import traceback
import asyncio
from pathlib import Path

from .config import Config
from .bases import WhalesRuntime
from .builder import Lifecycle
from .utils import setup_logger, parse_module_levels, LifecycleLogger
from .exceptions import (
    PackBuilderError,
    ConfigurationError,
    DefinitionError,
    PhaseError,
    RegistryAuthError,
    RuntimeOperationError,
)
from . import __version__


def complete_config_files(ctx, param, incomplete):
    """Auto-complete .yml and .yaml build files in current directory"""
    try:
        cwd = Path.cwd()
        yml_files = list(cwd.glob('*.yml')) + list(cwd.glob('*.yaml'))
        return sorted(f.name for f in yml_files if f.name.startswith(incomplete))
    except OSError as e:
        logging.debug(f"Config file auto-completion failed: {e}")
        return []


def setup_logging(debug: bool, log_levels: str = None, log_file: str = None):
    """Setup logger with debug and module-level configuration"""
    module_levels = parse_module_levels(log_levels) if log_levels else None
    setup_logger(debug=debug, module_levels=module_levels, log_file=log_file)


def _abort(message: str):
    logging.error(message)
    ctx = click.get_current_context()
    if (ctx.obj or {}).get('debug'):
        traceback.print_exc()
    raise click.Abort()


def handle_errors(func):
    """Decorator to handle common exceptions"""
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ConfigurationError as e:
            _abort(f"Configuration error: {e}")
        except DefinitionError as e:
            _abort(f"Definition error: {e}")
        except RegistryAuthError as e:
            _abort(f"Registry auth error: {e}")
        except PhaseError as e:
            _abort(f"Build error: {e}")
        except RuntimeOperationError as e:
            _abort(f"Container runtime error: {e}")
        except PackBuilderError as e:
            _abort(f"An unexpected application error occurred: {e}")
        except KeyboardInterrupt:
            _abort("Interrupted, phase containers were stopped.")
        except Exception as e:
            _abort(f"An unexpected error occurred: {e}")
    return wrapper


@handle_errors
def do_build(config_file: str, publish: bool, clear_cache: bool, network: str, volumes: tuple):
    """Execute build command"""
    config = Config(config_file)
    config.override(
        publish=publish,
        clear_cache=True if clear_cache else None,
        network=network,
        volumes=list(volumes) if volumes else None,
    )

    runtime = WhalesRuntime()
    lifecycle = Lifecycle.create(config.model, runtime, logger=LifecycleLogger())
    logging.info(f"Using lifecycle {lifecycle.version} from builder '{config.builder}'")

    asyncio.run(lifecycle.execute(config.options()))


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging (lifecycles run with -log-level debug)')
@click.option('-l', '--log-levels', help="Comma-separated per-module log levels (e.g., 'phase=DEBUG,auth=INFO')")
@click.option('-f', '--log-file', help='Path to log file')
@click.version_option(version=__version__, prog_name='packbuilder')
@click.pass_context
def cli(ctx, debug, log_levels, log_file):
    """Pack Builder - Build OCI images from source with a buildpacks builder

    \b
    Examples:
      packb build app.yml                Build into the local daemon
      packb build app.yml --publish      Build and push to the registry
      packb --debug build app.yml        Verbose lifecycle output
    """
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug
    setup_logging(debug, log_levels, log_file)


@cli.command()
@click.argument('config_file', type=click.Path(dir_okay=False), shell_complete=complete_config_files)
@click.option('--publish/--no-publish', default=None, help='Export to the registry instead of the daemon')
@click.option('--clear-cache', is_flag=True, help='Ignore the build cache')
@click.option('--network', help='Network mode of the detect and build phases')
@click.option('-v', '--volume', 'volumes', multiple=True, help='Extra bind (src:dst[:mode]) for detect and build')
@click.pass_context
def build(ctx, config_file, publish, clear_cache, network, volumes):
    """Build an application image from a build file"""
    do_build(config_file, publish, clear_cache, network, volumes)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
