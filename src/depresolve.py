"""depresolve - Maven artifact resolver and dependency flattener

    Resolves coordinates to repository locations, flattens transitive
    dependency graphs, and verifies or downloads artifacts into a local
    repository.

    Returns:
        int: Exit code
"""
import sys
import logging
import json
import os
from pathlib import Path

from constants import ExitCodes, Actions, Constants
from common.logging_utils import ENV_LOG_LEVEL, configure_logging, extra_context, is_debug_enabled
from args import parse_args
import cli_config
from errors import (
    MalformedDescriptorError,
    NotFoundError,
    PersistenceError,
    ResolverError,
    TransientIOError,
    UnsupportedVersionError,
)
from resolver import ResolutionSession, UpdateChecker

logger = logging.getLogger(__name__)


def package_record(pkg):
    """Build the JSON-serializable view of a package.

    Args:
        pkg (Package): Package to describe.

    Returns:
        dict: Coordinate, name and resolved URL (None when unresolvable).
    """
    try:
        url = pkg.base_url
    except ResolverError:
        url = None
    return {
        "coordinate": str(pkg.coordinate),
        "groupId": pkg.coordinate.group,
        "artifactId": pkg.coordinate.artifact,
        "version": pkg.coordinate.version,
        "classifier": pkg.coordinate.classifier,
        "name": pkg.name,
        "url": url,
    }


def export_json(results, path):
    """Exports the results to a JSON file.

    Args:
        results (list): List of result dicts.
        path (str): File path to export the JSON.
    """
    try:
        with open(path, 'w', encoding='utf-8') as file:
            json.dump(results, file, ensure_ascii=False, indent=4)
        logging.info("JSON file has been successfully exported at: %s", path)
    except OSError as e:
        logging.error("JSON file couldn't be written to disk: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)


def load_pom(session, path):
    """Registers a local pom.xml as the root package.

    Args:
        session (ResolutionSession): Session to register the descriptor with.
        path (str): Path of the pom.xml file or of its directory.

    Returns:
        Package: The project described by the file.
    """
    if os.path.isdir(path):
        path = os.path.join(path, Constants.POM_XML_FILE)
    try:
        with open(path, encoding='utf-8') as file:
            text = file.read()
    except OSError as e:
        logging.error("Cannot read %s: %s, aborting", path, e)
        sys.exit(ExitCodes.FILE_ERROR.value)
    try:
        return session.register_descriptor(text, Path(path).resolve().as_uri())
    except (MalformedDescriptorError, UnsupportedVersionError) as e:
        logging.error("Invalid project file %s: %s, aborting", path, e)
        sys.exit(ExitCodes.FILE_ERROR.value)


def run_action(session, action, root, failures, from_file=False):
    """Runs one action for one root package.

    Args:
        session (ResolutionSession): Active session.
        action (Actions): Action to perform.
        root (Package): Package given on the command line.
        failures (list): Collects (coordinate, error) for failed work.
        from_file (bool): Root comes from a local pom.xml and has no remote location.

    Returns:
        dict: Result record for the JSON export.
    """
    if action is Actions.RESOLVE and not from_file:
        url = session.resolve(root.coordinate)
        logging.info("%s -> %s", root.coordinate, url)
        return package_record(root)

    record = package_record(root)
    closure = session.flatten_package(root) if from_file else session.flatten(root.coordinate)
    members = sorted(closure, key=lambda p: str(p.coordinate))
    if action in (Actions.DEPS, Actions.RESOLVE):
        record["dependencies"] = [package_record(p) for p in members if p != root]
        for pkg in record["dependencies"]:
            logging.info("  %s", pkg["coordinate"])
        return record

    checker = UpdateChecker(session)
    updates = [p for p in members if not (from_file and p == root) and not checker.verify(p)]
    record["updates"] = [package_record(p) for p in updates]
    for pkg in updates:
        logging.info("Needs update: %s", pkg.coordinate)
    if action is Actions.FETCH:
        fetched = []
        for pkg in updates:
            try:
                fetched.append(checker.download(pkg))
            except (ResolverError, OSError) as e:
                logging.error("Download of %s failed: %s", pkg.coordinate, e)
                failures.append((str(pkg.coordinate), e))
        record["downloaded"] = fetched
    return record


def exit_code_for(failures):
    """Maps collected failures to an exit code.

    Args:
        failures (list): (coordinate, error) pairs.

    Returns:
        int: Exit code
    """
    if not failures:
        return ExitCodes.SUCCESS.value
    if any(isinstance(e, TransientIOError) for _, e in failures):
        return ExitCodes.CONNECTION_ERROR.value
    if any(isinstance(e, NotFoundError) for _, e in failures):
        return ExitCodes.NOT_FOUND.value
    if any(isinstance(e, OSError) for _, e in failures):
        return ExitCodes.FILE_ERROR.value
    return ExitCodes.EXIT_WARNINGS.value


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    # Honor CLI --loglevel by passing it to centralized logger via env
    if getattr(args, "LOG_LEVEL", None):
        os.environ[ENV_LOG_LEVEL] = str(args.LOG_LEVEL).upper()
    configure_logging(args.LOG_FILE, args.QUIET)
    cli_config.apply_all(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    if not args.PACKAGES and not args.POM and not args.DROP_CACHE:
        logging.warning("No packages given; use --package or --pom.")
        sys.exit(ExitCodes.SUCCESS.value)

    action = Actions(args.ACTION)
    failures = []
    results = []
    with ResolutionSession(
        repositories=Constants.DEFAULT_REPOSITORIES,
        local_root=Constants.LOCAL_REPOSITORY,
        cache_path=Constants.CACHE_PATH,
    ) as session:
        if args.DROP_CACHE:
            try:
                session.drop_cache()
                logging.info("Persistent cache cleared.")
            except PersistenceError as e:
                logging.error("Cannot clear cache: %s", e)
                failures.append(("cache", e))

        roots = []
        if args.POM:
            roots.append((load_pom(session, args.POM), True))
        for text in args.PACKAGES:
            try:
                coordinate = session.parse_coordinate(text)
            except ValueError as e:
                logging.error("%s", e)
                failures.append((text, e))
                continue
            roots.append((session.package(coordinate), False))

        for root, from_file in roots:
            try:
                results.append(run_action(session, action, root, failures, from_file))
            except ResolverError as e:
                logging.error("%s: %s", root.coordinate, e)
                failures.append((str(root.coordinate), e))

    if args.OUTPUT:
        export_json(results, args.OUTPUT)

    code = exit_code_for(failures)
    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(
                event="function_exit", component="cli", action="main",
                outcome="success" if code == ExitCodes.SUCCESS.value else "failures",
                count=len(failures)
            )
        )
    sys.exit(code)


if __name__ == "__main__":
    main()
