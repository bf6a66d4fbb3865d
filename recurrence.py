import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings
from models import Expense, RecurrenceType
from store import CheckpointConflict, ExpenseStore, StoreError, Template


logger = logging.getLogger(__name__)


class MaterializationError(RuntimeError):
    pass


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def days_between(anchor: date, as_of: date) -> int:
    # date subtraction is already whole days; negative when the anchor is in the future
    return (as_of - anchor).days


def is_due(recurrence_type: RecurrenceType, anchor: date, as_of: date) -> bool:
    return days_between(anchor, as_of) >= RecurrenceType(recurrence_type).threshold_days


def build_instance(template: Template, as_of: date) -> Expense:
    return Expense(
        user_id=template.user_id,
        amount=template.amount,
        title=template.title,
        date=as_of,
        is_income=template.is_income,
        category_name=template.category_name,
        split_with=template.split_with,
        is_impulse=False,
        is_recurring=False,
        recurrence_type=None,
        last_generated_date=None,
    )


@dataclass
class MaterializationReport:
    as_of: date
    generated_titles: list[str] = field(default_factory=list)
    failed_titles: list[str] = field(default_factory=list)

    @property
    def generated_count(self) -> int:
        return len(self.generated_titles)

    def to_payload(self) -> dict[str, object]:
        return {
            "success": True,
            "generated": self.generated_count,
            "entries": list(self.generated_titles),
            "failed": list(self.failed_titles),
            "date": self.as_of.isoformat(),
        }


class RecurringMaterializer:
    """Turns due recurring templates into dated expenses.

    Each due template is handled as its own unit of work: the new instance is
    inserted, the template checkpoint is moved from the value that was read to
    ``as_of``, and both are committed together. If the checkpoint moved in the
    meantime (a concurrent run already materialized it) the insert is rolled
    back, so a period yields at most one instance. A template deleted during
    the run is reported the same way.
    """

    def __init__(self, store: ExpenseStore) -> None:
        self.store = store

    def run(self, as_of: Optional[date] = None) -> MaterializationReport:
        as_of = as_of or local_today()
        report = MaterializationReport(as_of=as_of)
        try:
            templates = self.store.find_templates()
        except StoreError as exc:
            logger.error(f"materialize_run: as_of={as_of} fetch_failed error={exc}")
            raise MaterializationError(str(exc)) from exc

        logger.info(f"materialize_run: as_of={as_of} templates={len(templates)}")
        for template in templates:
            self._process(template, as_of, report)

        logger.info(
            f"materialize_run: as_of={as_of} generated={report.generated_count} "
            f"failed={len(report.failed_titles)}"
        )
        return report

    def _process(
        self, template: Template, as_of: date, report: MaterializationReport
    ) -> None:
        template_id = template.id
        title = template.title
        checkpoint = template.last_generated_date
        anchor = template.generation_anchor
        if not is_due(template.recurrence_type, anchor, as_of):
            return

        logger.info(
            f"materialize_template: id={template_id} title={title!r} anchor={anchor}"
        )
        try:
            self.store.insert(build_instance(template, as_of))
        except StoreError as exc:
            self.store.rollback()
            logger.error(
                f"materialize_template: id={template_id} insert_failed error={exc}"
            )
            report.failed_titles.append(title)
            return

        try:
            self.store.update_checkpoint(template_id, checkpoint, as_of)
            self.store.commit()
        except CheckpointConflict:
            self.store.rollback()
            logger.warning(
                f"materialize_template: id={template_id} checkpoint_conflict, "
                "instance discarded"
            )
            report.failed_titles.append(title)
            return
        except StoreError as exc:
            self.store.rollback()
            logger.error(
                f"materialize_template: id={template_id} checkpoint_failed error={exc}"
            )
            report.failed_titles.append(title)
            return

        report.generated_titles.append(title)
