"""Argument parsing functionality for depresolve."""

import argparse
from constants import Constants

def parse_args(argv=None):
    """Parses the arguments passed to the program.

    Args:
        argv (list, optional): Arguments to parse instead of ``sys.argv[1:]``.
    """
    parser = argparse.ArgumentParser(
        prog="depresolve",
        description=(
            "depresolve - Maven artifact resolver and dependency flattener"
        ),
        add_help=True,
    )

    input_group = parser.add_mutually_exclusive_group(required=False)
    input_group.add_argument("-p", "--package",
                            dest="PACKAGES",
                            help="Coordinate to resolve, group:artifact:version[:classifier]",
                            action="append", type=str,
                            default=[])
    input_group.add_argument("--pom",
                            dest="POM",
                            help="Resolve the dependencies of a local pom.xml",
                            action="store", type=str)

    parser.add_argument("-a", "--action",
                        dest="ACTION",
                        help="What to do with the packages: resolve, deps, updates, fetch (default: resolve)",
                        action="store", default="resolve", type=str,
                        choices=Constants.SUPPORTED_ACTIONS)
    parser.add_argument("-r", "--repository",
                        dest="REPOSITORIES",
                        help="Additional remote repository URL (can be used multiple times)",
                        action="append", type=str,
                        default=[])
    parser.add_argument("--local",
                        dest="LOCAL_REPOSITORY",
                        help="Local repository directory",
                        action="store", type=str)
    parser.add_argument("--cache",
                        dest="CACHE_PATH",
                        help="Path to the persistent resolution cache",
                        action="store", type=str)
    parser.add_argument("--drop-cache",
                        dest="DROP_CACHE",
                        help="Clear the persistent resolution cache before resolving",
                        action="store_true")

    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Path to JSON output file",
                        action="store",
                        type=str)
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
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not output to console.",
                        action="store_true")

    # Config file (general)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
