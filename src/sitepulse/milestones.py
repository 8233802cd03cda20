"""
Milestone notifications.

When a site's unique-visitor count first passes a rung of the milestone
ladder, the owner gets one email. Bookkeeping lives in the event store as
MilestoneRecords; the check is read-then-write, so two concurrent checks can
both send an email for the same milestone. That duplicate is tolerated.
"""
import logging
from dataclasses import dataclass, field

from jinja2 import Environment

from .config import DEFAULT_MILESTONES
from .mailer import Mailer
from .models import MilestoneRecord
from .store import EventStore

logger = logging.getLogger(__name__)

_env = Environment(autoescape=True)
_env.filters["thousands"] = lambda value: f"{value:,}"

EMAIL_SUBJECT = "🎉 {hostname} reached {milestone:,} visitors!"

EMAIL_TEMPLATE = _env.from_string("""\
<div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="text-align: center; margin-bottom: 30px;">
    <h1 style="color: #7c3aed; margin: 0;">🎉 Milestone Reached!</h1>
  </div>
  <div style="background: linear-gradient(135deg, #7c3aed 0%, #a855f7 100%); border-radius: 12px; padding: 30px; text-align: center; color: white; margin-bottom: 30px;">
    <p style="margin: 0 0 10px 0; font-size: 16px; opacity: 0.9;">Your website</p>
    <h2 style="margin: 0 0 20px 0; font-size: 24px;">{{ hostname }}</h2>
    <p style="margin: 0; font-size: 18px;">has reached</p>
    <h1 style="margin: 10px 0; font-size: 48px; font-weight: bold;">{{ milestone | thousands }}</h1>
    <p style="margin: 0; font-size: 18px;">unique visitors!</p>
  </div>
  <p style="color: #6b7280; text-align: center; font-size: 14px;">
    Keep up the great work! Your analytics are growing. 📈
  </p>
  <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 30px 0;" />
  <p style="color: #9ca3af; text-align: center; font-size: 12px;">
    This notification was sent because you enabled milestone alerts for {{ hostname }}.
  </p>
</div>
""")


@dataclass
class MilestoneResult:
    """What a milestone check did.

    Attributes:
        milestone: The milestone that was emailed, or None if nothing was sent
        recorded: Every milestone newly marked as notified, ascending
    """
    milestone: int | None = None
    recorded: list[int] = field(default_factory=list)

    @property
    def notified(self) -> bool:
        return self.milestone is not None


def render_milestone_email(hostname: str, milestone: int) -> tuple[str, str]:
    """Build (subject, html) for a milestone email."""
    subject = EMAIL_SUBJECT.format(hostname=hostname, milestone=milestone)
    html = EMAIL_TEMPLATE.render(hostname=hostname, milestone=milestone)
    return subject, html


def reached_milestones(current_visitors: int, ladder: tuple[int, ...] = DEFAULT_MILESTONES) -> set[int]:
    """Milestones at or below the current count."""
    return {m for m in ladder if current_visitors >= m}


class MilestoneChecker:
    """Sends at most one email per newly crossed milestone set."""

    def __init__(
        self,
        store: EventStore,
        mailer: Mailer,
        milestones: tuple[int, ...] = DEFAULT_MILESTONES,
    ):
        self.store = store
        self.mailer = mailer
        self.milestones = milestones

    async def check(
        self,
        site_id: str,
        hostname: str,
        current_visitors: int,
        email: str | None,
    ) -> MilestoneResult:
        """
        Notify the owner of the highest newly crossed milestone.

        One email names only the highest new milestone, but every newly
        crossed milestone is recorded, so skipped-over lower rungs are never
        emailed later. If sending fails nothing is recorded and the error
        propagates; the next check will try again.

        Raises:
            MailDeliveryError: If the mailer could not send the email
        """
        if not email:
            logger.debug(f"No notification email for {hostname}, skipping milestone check")
            return MilestoneResult()

        reached = reached_milestones(current_visitors, self.milestones)
        if not reached:
            return MilestoneResult()

        already = await self.store.list_notified_milestones(site_id)
        new = sorted(reached - already)
        if not new:
            return MilestoneResult()

        highest = new[-1]
        logger.info(f"Sending milestone notification for {hostname}: {highest} visitors")
        subject, html = render_milestone_email(hostname, highest)
        await self.mailer.send(email, subject, html)

        for milestone in new:
            await self.store.add_milestone(MilestoneRecord(site_id=site_id, milestone=milestone))

        return MilestoneResult(milestone=highest, recorded=new)
