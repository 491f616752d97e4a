"""modresolve - resolve module dependencies into repository rules.

Reads the root module file, resolves its dependency graph against the
configured registries and prints the repository spec of each requested
canonical repository name as JSON.
"""

import json
import logging
import sys

from args import parse_args
from cli_config import build_config
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import ExitCodes
from resolution.errors import ConfigurationError, FetchError, ResolutionError
from resolution.resolver import Resolver

logger = logging.getLogger(__name__)


def _setup_logging(args):
    """Configure logging from --loglevel and --logfile."""
    configure_logging(args.LOG_LEVEL)
    if args.LOG_FILE:
        handler = logging.FileHandler(args.LOG_FILE, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logging.getLogger().addHandler(handler)


def collect_specs(resolver, args):
    """Map each requested canonical name to its spec dict, or None."""
    if args.ALL:
        specs = resolver.all_repo_specs()
        return {name: spec.to_dict() for name, spec in sorted(specs.items())}
    result = {}
    for name in args.REPO_NAMES:
        spec = resolver.get_repo_spec(name)
        if spec is None:
            logger.warning("No live repository named '%s'", name)
        result[name] = spec.to_dict() if spec is not None else None
    return result


def write_output(payload, path=None):
    """Write ``payload`` as JSON to ``path`` or stdout."""
    text = json.dumps(payload, indent=2, sort_keys=False)
    if not path:
        sys.stdout.write(text + "\n")
        return
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(text + "\n")
    logging.info("JSON file has been successfully exported at: %s", path)


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    _setup_logging(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    if not args.ALL and not args.REPO_NAMES:
        logger.error("Name at least one repository or pass --all.")
        return ExitCodes.FILE_ERROR.value

    try:
        config = build_config(args)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return ExitCodes.CONFIG_ERROR.value

    try:
        with Resolver.from_file(args.MODULE_FILE, config=config) as resolver:
            payload = collect_specs(resolver, args)
    except FileNotFoundError as exc:
        logger.error("File not found: %s, aborting", exc)
        return ExitCodes.FILE_ERROR.value
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return ExitCodes.CONFIG_ERROR.value
    except FetchError as exc:
        logger.error("Registry fetch failed: %s", exc)
        return ExitCodes.CONNECTION_ERROR.value
    except ResolutionError as exc:
        logger.error("Resolution failed: %s", exc)
        return ExitCodes.RESOLUTION_ERROR.value

    try:
        write_output(payload, args.OUTPUT)
    except OSError as exc:
        logger.error("Output couldn't be written: %s", exc)
        return ExitCodes.FILE_ERROR.value
    return ExitCodes.SUCCESS.value


if __name__ == "__main__":
    sys.exit(main())
