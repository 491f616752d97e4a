"""Argument parsing functionality for modresolve."""

import argparse

from constants import CheckMode, Constants

_MODES = [mode.value for mode in CheckMode]


def build_parser():
    """Builds the argument parser."""
    parser = argparse.ArgumentParser(
        prog="modresolve",
        description=(
            "modresolve - Resolve module dependencies into repository rules"
        ),
        add_help=True,
    )

    parser.add_argument("REPO_NAMES",
                        help="Canonical repository names to resolve, e.g. foo~1.2.0",
                        nargs="*",
                        metavar="REPO_NAME")
    parser.add_argument("-m", "--module-file",
                        dest="MODULE_FILE",
                        help=f"Root module file (default: {Constants.MODULE_FILE})",
                        action="store", type=str,
                        default=Constants.MODULE_FILE)
    parser.add_argument("-r", "--registry",
                        dest="REGISTRIES",
                        help="Registry URL; repeat to try several in order.",
                        action="append", type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="YAML configuration file",
                        action="store", type=str)
    parser.add_argument("--override-module",
                        dest="MODULE_OVERRIDES",
                        help="Use a local directory for a module: NAME=PATH",
                        action="append", type=str)
    parser.add_argument("--ignore-dev-deps",
                        dest="IGNORE_DEV_DEPS",
                        help="Ignore dev_dependency edges of the root module.",
                        action="store_true")
    parser.add_argument("--check-direct-deps",
                        dest="CHECK_DIRECT_DEPS",
                        help="How to report root dependencies resolved to another version",
                        type=str.lower,
                        choices=_MODES)
    parser.add_argument("--compatibility-mode",
                        dest="COMPATIBILITY_MODE",
                        help="How to report compatibility violations",
                        type=str.lower,
                        choices=_MODES)
    parser.add_argument("--tool-version",
                        dest="TOOL_VERSION",
                        help="Tool version checked against bazel_compatibility constraints",
                        action="store", type=str)
    parser.add_argument("--max-workers",
                        dest="MAX_WORKERS",
                        help="Number of parallel registry fetches",
                        action="store", type=int)
    parser.add_argument("-a", "--all",
                        dest="ALL",
                        help="Print the spec of every live repository.",
                        action="store_true")
    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Write JSON output to this file instead of stdout",
                        action="store", type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
