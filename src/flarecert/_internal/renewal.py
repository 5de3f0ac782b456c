"""Functionality for deciding when and whether to (re)issue a certificate."""
import datetime
import enum
import logging
import traceback
from typing import Iterable
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import TYPE_CHECKING

import pytz

from flarecert import errors
from flarecert._internal import constants
from flarecert._internal import san
from flarecert._internal import storage
from flarecert._internal.display import obj as display_obj

if TYPE_CHECKING:
    from flarecert._internal import cert_manager

logger = logging.getLogger(__name__)


class Action(enum.Enum):
    """Outcome of `RenewalDecisionEngine.decide`."""
    SKIP = "skip"
    RENEW = "renew"
    REPLACE = "replace"


def days_remaining(expires_at: datetime.datetime, now: datetime.datetime) -> int:
    """Whole days left until ``expires_at``, rounded down."""
    return int((expires_at - now).total_seconds() // 3600 / 24)


class RenewalDecisionEngine:
    """Decides whether a requested domain set should be issued.

    Ambiguous cases are settled with the ``yesno`` method of the injected
    display; declining always means `Action.SKIP`.

    :ivar display: prompts the operator
    :ivar bool force: always renew without looking at the existing certificate

    """
    def __init__(self, display: display_obj.Display, force: bool = False) -> None:
        self.display = display
        self.force = force

    def decide(self, requested: san.DomainSet, store: storage.CertificateStore,
               now: Optional[datetime.datetime] = None) -> Action:
        """Compare the requested domains with the slot's current certificate.

        :param .DomainSet requested: domains the caller wants covered
        :param .CertificateStore store: slot the domains map to
        :param datetime.datetime now: aware reference time, defaults to now

        :rtype: Action

        """
        if self.force:
            logger.info("Forcing issuance for %s", requested)
            return Action.RENEW

        if not store.has_certificate():
            logger.debug("No existing certificate in %s", store.paths.current_dir)
            return Action.RENEW

        try:
            names, expires_at = store.certificate_info()
        except errors.Error as error:
            logger.warning("Could not parse existing certificate %s, treating it as absent: %s",
                           store.paths.cert, error)
            return Action.RENEW

        existing = san.DomainSet(names)
        if existing != requested:
            self.display.notification(
                "Certificate for {0} already exists with different domains:\n"
                "  Existing: {1}\n"
                "  Requested: {2}".format(store.name, existing, requested), wrap=False)
            if self.display.yesno("Do you want to replace it with the new certificate?"):
                return Action.REPLACE
            return Action.SKIP

        if now is None:
            now = datetime.datetime.now(pytz.UTC)
        expiry = expires_at.strftime("%Y-%m-%d")

        if expires_at <= now:
            ago = days_remaining(now, expires_at)
            logger.warning("Certificate for %s has expired (%d days ago)", store.name, ago)
            self.display.notification(
                "Certificate for {0} has expired ({1} days ago), renewing.".format(
                    store.name, ago))
            return Action.RENEW

        days = days_remaining(expires_at, now)
        if days <= constants.RENEWAL_WINDOW_DAYS:
            question = ("Certificate for {0} expires in {1} days ({2}). "
                        "Do you want to renew it now?".format(store.name, days, expiry))
        else:
            question = ("Certificate for {0} is still valid for {1} days (until {2}). "
                        "Do you want to renew it anyway?".format(store.name, days, expiry))
        if self.display.yesno(question):
            return Action.RENEW
        return Action.SKIP


class RenewalCandidate(NamedTuple):
    """A slot found by `find_certificates_for_renewal`."""
    store: storage.CertificateStore
    domains: List[str]
    expires_at: datetime.datetime


def find_certificates_for_renewal(cert_dir: str,
                                  days: int = constants.RENEWAL_WINDOW_DAYS,
                                  renew_all: bool = False,
                                  now: Optional[datetime.datetime] = None
                                  ) -> List[RenewalCandidate]:
    """Slots under ``cert_dir`` expiring within ``days`` days.

    Slots whose certificate cannot be parsed are logged and left out.

    :param bool renew_all: select every slot regardless of expiry
    :raises errors.CertStorageError: if ``cert_dir`` cannot be read

    """
    if now is None:
        now = datetime.datetime.now(pytz.UTC)
    threshold = now + datetime.timedelta(days=days)

    candidates = []
    for store in storage.list_stores(cert_dir):
        try:
            names, expires_at = store.certificate_info()
        except errors.Error as error:
            logger.warning("Skipping %s: %s", store.name, error)
            continue
        if renew_all or expires_at < threshold:
            logger.debug("%s expires on %s and will be renewed", store.name, expires_at)
            candidates.append(RenewalCandidate(store, names, expires_at))
        else:
            logger.debug("%s is not due for renewal yet", store.name)
    return candidates


class RenewalReport(NamedTuple):
    """Slot names grouped by the outcome of `renew_all`."""
    successes: List[str]
    failures: List[str]


def renew_all(manager: "cert_manager.Manager",
              candidates: Iterable[RenewalCandidate]) -> RenewalReport:
    """Renew each candidate in turn, without prompting.

    A failing slot is logged and recorded; the remaining slots are still
    renewed.

    """
    successes: List[str] = []
    failures: List[str] = []
    for candidate in candidates:
        logger.info("Renewing %s", san.summarize(candidate.domains))
        try:
            manager.generate_certificate(candidate.domains, force=True)
        except Exception as e:  # pylint: disable=broad-except
            logger.error("Failed to renew certificate %s with error: %s",
                         candidate.store.name, e)
            logger.debug("Traceback was:\n%s", traceback.format_exc())
            failures.append(candidate.store.name)
        else:
            successes.append(candidate.store.name)
    return RenewalReport(successes, failures)


def report(msgs: Iterable[str], category: str) -> str:
    """Format a results report for a category of renewal outcomes"""
    lines = ("%s (%s)" % (m, category) for m in msgs)
    return "  " + "\n  ".join(lines)


def describe_results(display: display_obj.Display, results: RenewalReport) -> None:
    """Print a summary of a batch renewal.

    :param display: where to print
    :param RenewalReport results: outcome of `renew_all`

    """
    notify = display.notification

    notify("\n{0}".format(display_obj.SIDE_FRAME), wrap=False)
    if not results.successes and not results.failures:
        notify("No renewals were attempted.")
    elif results.successes and not results.failures:
        notify("Congratulations, all renewals succeeded:")
        notify(report(results.successes, "success"), wrap=False)
    elif results.failures and not results.successes:
        notify("All renewals failed. The following certificates could not be renewed:")
        notify(report(results.failures, "failure"), wrap=False)
    else:
        notify("The following renewals succeeded:")
        notify(report(results.successes, "success") + "\n", wrap=False)
        notify("The following renewals failed:")
        notify(report(results.failures, "failure"), wrap=False)
    notify(display_obj.SIDE_FRAME, wrap=False)
