#!/usr/bin/env python3
"""Command execution for RuleSort.

This module handles:
- Loading the rules file named by the configuration
- Running sort passes and writing reports
- Rule management commands (list, add, remove, toggle, export)
- Rule file validation and template generation
- Showing and resetting the configuration

Example:
    >>> from rulesort.main import run_rulesort
    >>> run_rulesort(args, config, logger)
"""

import argparse
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, TextIO

from rulesort.core.constants import ConfigKey
from rulesort.core.validators import validate_glob, validate_regex
from rulesort.infrastructure.config_manager import ConfigManager
from rulesort.infrastructure.logger import Logger
from rulesort.report import write_report
from rulesort.rules.models import Rule
from rulesort.rules.rules_file import RulesFile, dump_yaml, read_rules, rule_template
from rulesort.sorter import MatchResult, Sorter, prepare_sort


class RuleSortMain:
    """
    Main class for RuleSort command execution.

    Each subcommand maps to one ``cmd_*`` method returning an exit code.
    """

    def __init__(
        self,
        args: argparse.Namespace,
        config: ConfigManager,
        logger: Logger,
        out: Optional[TextIO] = None,
    ):
        """
        Initialize RuleSort main controller.

        Args:
            args: Parsed command-line arguments
            config: Configuration manager
            logger: Logger instance
            out: Stream for user-facing output (defaults to stdout)
        """
        self.args = args
        self.config = config
        self.logger = logger
        self.out = out or sys.stdout
        self._commands: Dict[str, Callable[[], int]] = {
            "sort": self.cmd_sort,
            "list": self.cmd_list,
            "add": self.cmd_add,
            "remove": self.cmd_remove,
            "toggle": self.cmd_toggle,
            "export": self.cmd_export,
            "validate": self.cmd_validate,
            "template": self.cmd_template,
            "config": self.cmd_config,
        }

    def echo(self, message: str = "") -> None:
        print(message, file=self.out)

    def load_rules(self) -> RulesFile:
        """Load the configured rules file."""
        return RulesFile.load(self.config.get(ConfigKey.RULES_FILE))

    def cmd_sort(self) -> int:
        args = self.args
        context, files = prepare_sort(
            self.config,
            self.load_rules(),
            source=args.source,
            rule_ids=args.rules,
            dry_run=args.dry_run,
        )

        if args.dry_run:
            self.echo("Running in dry-run mode, no files will be changed")
        self.echo(f"Sorting {len(files)} file(s) in {context.source_root}")

        done = 0

        def progress() -> None:
            nonlocal done
            done += 1
            self.logger.debug("File processed", done=done, total=len(files))

        results = Sorter(context).sort(files, progress)
        self._print_results(results, args.dry_run)

        if args.report:
            path = write_report(args.report, args.output or Path.cwd(), results)
            self.echo(f"Report written to {path}")
        return 0

    def _print_results(self, results: List[MatchResult], dry_run: bool) -> None:
        prefix = "[dry-run] " if dry_run else ""
        for result in results:
            self.echo(
                f"{prefix}{result.file_name}: {result.action} "
                f"({result.matched_rule_id}) -> {result.new_path}"
            )
        self.echo(f"{len(results)} action(s) {'planned' if dry_run else 'applied'}")

    def cmd_list(self) -> int:
        rules = self.load_rules().list()
        if not rules:
            self.echo("No rules found")
            return 0

        for rule in rules:
            state = "enabled" if rule.enabled else "disabled"
            line = f"{rule.id}  {rule.name}  [{state}, priority {rule.priority}]"
            if rule.description:
                line += f"  - {rule.description}"
            self.echo(line)
        return 0

    def cmd_add(self) -> int:
        added = self.load_rules().add_from_file(self.args.file, overwrite=self.args.overwrite)
        self.echo(f"Added {len(added)} rule(s): {', '.join(rule.id for rule in added)}")
        return 0

    def cmd_remove(self) -> int:
        self.load_rules().remove(self.args.rule_id)
        self.echo(f"Removed rule '{self.args.rule_id}'")
        return 0

    def cmd_toggle(self) -> int:
        enabled = self.load_rules().toggle(self.args.rule_id)
        self.echo(f"Rule '{self.args.rule_id}' is now {'enabled' if enabled else 'disabled'}")
        return 0

    def cmd_export(self) -> int:
        text = self.load_rules().export(self.args.rule_id, self.args.output)
        if self.args.output:
            self.echo(f"Exported rule '{self.args.rule_id}' to {self.args.output}")
        else:
            self.out.write(text)
        return 0

    def cmd_validate(self) -> int:
        rules = read_rules(self.args.file)
        for rule in rules:
            for warning in pattern_warnings(rule):
                self.echo(f"Warning: {warning}")
        self.echo(f"{self.args.file} is valid ({len(rules)} rule(s))")
        return 0

    def cmd_template(self) -> int:
        output = Path(self.args.output).expanduser()
        output.write_text(dump_yaml(rule_template().to_dict()), encoding="utf-8")
        self.logger.info("Rule template generated", path=str(output))
        self.echo(f"Rule template written to {output}")
        return 0

    def cmd_config(self) -> int:
        if self.args.reset:
            path = self.config.reset()
            self.echo(f"Configuration reset to defaults in {path}")
        elif self.args.show:
            self.out.write(self.config.to_yaml())
        else:
            self.echo(str(self.config.config_file))
        return 0

    def run(self) -> int:
        """
        Run the selected command.

        Returns:
            Exit code (0 = success)
        """
        self.logger.debug("Running command", command=self.args.command)
        return self._commands[self.args.command]()


def pattern_warnings(rule: Rule) -> List[str]:
    """Describe patterns of a rule that can never match."""
    warnings = []
    when = rule.when
    if when.filename is not None and not validate_regex(when.filename):
        warnings.append(f"rule {rule.id}: filename regex does not compile: {when.filename}")
    if when.path is not None and not validate_glob(when.path):
        warnings.append(f"rule {rule.id}: path glob is malformed: {when.path}")
    for metadata_field in when.metadata or []:
        if metadata_field.value is not None and not validate_glob(metadata_field.value):
            warnings.append(
                f"rule {rule.id}: metadata glob is malformed: {metadata_field.value}"
            )
    return warnings


def run_rulesort(args: argparse.Namespace, config: ConfigManager, logger: Logger) -> int:
    """
    Run a RuleSort command.

    Args:
        args: Parsed command-line arguments
        config: Configuration manager
        logger: Logger instance

    Returns:
        Exit code
    """
    return RuleSortMain(args, config, logger).run()
