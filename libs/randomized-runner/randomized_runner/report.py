from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from randomized_core.locales import Locale
from randomized_runner.runner import CaseOutcome, CaseResult, SuiteResult


class ReportRenderer:
    """Renders the human readable reproduction lines and suite summaries."""

    def __init__(self):
        self.template_env = Environment(
            loader=FileSystemLoader(Path(__file__).parent / "templates"),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render_template(self, template_name: str, **kwargs) -> str:
        template = self.template_env.get_template(template_name)
        return template.render(**kwargs)

    def render_reproduce(
        self,
        suite_seed: int,
        locale: Locale,
        *,
        nodeid: str | None = None,
        name: str | None = None,
        iteration: int = 0,
        seed: int | None = None,
    ) -> str:
        return self.render_template(
            "reproduce.txt.j2",
            suite_seed=suite_seed,
            locale=locale.to_tag(),
            nodeid=nodeid,
            name=name,
            iteration=iteration,
            seed=seed,
        ).strip()

    def render_case_reproduce(self, suite: SuiteResult, result: CaseResult) -> str:
        return self.render_reproduce(
            suite.seed,
            suite.locale,
            name=result.name,
            iteration=result.iteration,
            seed=result.seed,
        )

    def render_summary(self, suite: SuiteResult) -> str:
        return self.render_template(
            "summary.txt.j2",
            suite_seed=suite.seed,
            locale=suite.locale.to_tag(),
            total=len(suite.results),
            clean=suite.count(CaseOutcome.CLEAN),
            ignored=suite.count(CaseOutcome.IGNORED),
            leaked=suite.count(CaseOutcome.LEAKED),
            failed=suite.count(CaseOutcome.FAILED),
            failures=suite.failures,
        ).rstrip()
