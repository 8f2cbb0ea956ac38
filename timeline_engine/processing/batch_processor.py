"""
Batch processor: one cadence run over every active client assignment.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterator, Optional, Tuple, Union

from timeline_engine.errors import (
    BatchItemFailure,
    ConfigValidationError,
    DateComputationError,
)
from timeline_engine.models import (
    Client,
    ClientObligationAssignment,
    ItemFailure,
    JobRunResult,
    Obligation,
    SubObligation,
    TimelineKey,
    TimelineMetadata,
)
from timeline_engine.processing.due_dates import current_period_due_date
from timeline_engine.processing.frequency_config import Cadence, parse_cadence, validate_frequency_config
from timeline_engine.processing.materializer import Materializer
from timeline_engine.processing.periods import financial_year_for, period_for
from timeline_engine.storage.directory import ClientDirectory
from timeline_engine.utils.clock import now_local

logger = logging.getLogger(__name__)

SCHEDULED_CADENCES = (Cadence.DAILY, Cadence.MONTHLY, Cadence.QUARTERLY, Cadence.YEARLY)


def scheduled_cadence(value: Union[str, Cadence]) -> Cadence:
    """
    Coerce a cadence that has a scheduled run.

    Raises:
        ValueError: For unknown cadences and for Hourly, Weekly, OneTime and None
    """
    try:
        cadence = parse_cadence(value)
    except ConfigValidationError:
        raise ValueError(f"Unknown frequency '{value}'") from None
    if cadence not in SCHEDULED_CADENCES:
        raise ValueError(
            f"{cadence.value} frequency is not scheduled; "
            f"expected one of {[c.value for c in SCHEDULED_CADENCES]}"
        )
    return cadence


class BatchProcessor:
    """
    Materializes the current period's timeline for every matching
    (client, obligation, sub-obligation) item of one cadence.

    Failures are collected per item and the run continues, unless
    ``fail_fast`` is set, in which case the first failure aborts the run.
    """

    def __init__(
        self,
        directory: ClientDirectory,
        materializer: Materializer,
        clock: Optional[Callable[[], datetime]] = None,
        fail_fast: bool = False
    ):
        self.directory = directory
        self.materializer = materializer
        self.clock = clock or now_local
        self.fail_fast = fail_fast

    def run(self, cadence: Union[str, Cadence]) -> JobRunResult:
        """
        Run one cadence over all active clients.

        Args:
            cadence: Daily, Monthly, Quarterly or Yearly

        Returns:
            JobRunResult with processed/created counters and item failures

        Raises:
            ValueError: If the cadence has no scheduled run
            BatchItemFailure: On the first item failure when ``fail_fast`` is set
        """
        cadence = scheduled_cadence(cadence)
        now = self.clock()
        result = JobRunResult(cadence=cadence.value)
        obligations: Dict[str, Optional[Obligation]] = {}

        logger.info(f"Starting {cadence.value} timeline generation at {now.isoformat()}")

        for client in self.directory.iter_active_clients():
            for assignment in client.assignments:
                if assignment.obligation_id not in obligations:
                    obligations[assignment.obligation_id] = self.directory.get_obligation(
                        assignment.obligation_id
                    )
                obligation = obligations[assignment.obligation_id]
                if obligation is None:
                    logger.warning(
                        f"Client {client.id} is assigned unknown obligation {assignment.obligation_id}"
                    )
                    continue

                for sub in self._matching_sub_obligations(obligation, assignment, cadence):
                    self._process_item(client, obligation, sub, cadence, now, result)

        logger.info(
            f"{cadence.value} timeline generation finished: processed={result.processed} "
            f"created={result.created} failed={result.failed}"
        )
        return result

    def materialize_assignment(
        self,
        client_id: str,
        obligation_id: str,
        sub_obligation_id: Optional[str] = None
    ) -> Dict[str, JobRunResult]:
        """
        Materialize the current period of one newly assigned obligation.

        Covers every scheduled cadence among the obligation's sub-obligations
        (only ``sub_obligation_id`` when given).

        Returns:
            Mapping of cadence name to JobRunResult for cadences with items

        Raises:
            LookupError: If the client or obligation does not exist
        """
        client = self.directory.get_client(client_id)
        if client is None:
            raise LookupError(f"Client {client_id} not found")
        obligation = self.directory.get_obligation(obligation_id)
        if obligation is None:
            raise LookupError(f"Obligation {obligation_id} not found")
        if sub_obligation_id is not None and not any(
            sub.id == sub_obligation_id for sub in obligation.sub_obligations
        ):
            raise LookupError(
                f"Sub-obligation {sub_obligation_id} not found in obligation {obligation_id}"
            )

        assignment = ClientObligationAssignment(obligation_id, sub_obligation_id)
        now = self.clock()
        results: Dict[str, JobRunResult] = {}

        for cadence in SCHEDULED_CADENCES:
            items = list(self._matching_sub_obligations(obligation, assignment, cadence))
            if not items:
                continue
            result = JobRunResult(cadence=cadence.value)
            for sub in items:
                self._process_item(client, obligation, sub, cadence, now, result)
            results[cadence.value] = result

        logger.info(
            f"Materialized assignment of obligation {obligation_id} to client {client_id}: "
            f"{sum(r.created for r in results.values())} created"
        )
        return results

    def _matching_sub_obligations(
        self,
        obligation: Obligation,
        assignment: ClientObligationAssignment,
        cadence: Cadence
    ) -> Iterator[SubObligation]:
        for sub in obligation.sub_obligations:
            # A pinned assignment only covers its own sub-obligation
            if assignment.sub_obligation_id and sub.id != assignment.sub_obligation_id:
                continue
            if sub.cadence == cadence.value:
                yield sub

    def _process_item(
        self,
        client: Client,
        obligation: Obligation,
        sub: SubObligation,
        cadence: Cadence,
        now: datetime,
        result: JobRunResult
    ) -> None:
        result.processed += 1
        try:
            created, key, due_date = self._materialize(client, obligation, sub, cadence, now)
        except Exception as e:
            failure = ItemFailure(
                client_id=client.id,
                obligation_id=obligation.id,
                sub_obligation_id=sub.id,
                cadence=cadence.value,
                error_type=type(e).__name__,
                message=str(e),
            )
            result.failures.append(failure)

            if isinstance(e, (DateComputationError, ConfigValidationError)):
                logger.warning(
                    f"Skipping {cadence.value} item client={client.id} obligation={obligation.id} "
                    f"sub_obligation={sub.id}: {e}"
                )
            else:
                logger.error(
                    f"Failed {cadence.value} item client={client.id} obligation={obligation.id} "
                    f"sub_obligation={sub.id}: {e}",
                    exc_info=True
                )

            if self.fail_fast:
                raise BatchItemFailure(failure, e) from e
            return

        if created:
            result.created += 1
            logger.info(f"Created {cadence.value} timeline {key} due {due_date.isoformat()}")

    def _materialize(
        self,
        client: Client,
        obligation: Obligation,
        sub: SubObligation,
        cadence: Cadence,
        now: datetime
    ) -> Tuple[bool, TimelineKey, datetime]:
        config = validate_frequency_config(sub.cadence, sub.frequency_config)
        period = period_for(now, cadence)
        due_date = current_period_due_date(cadence, config, now)

        key = TimelineKey(
            client_id=client.id,
            obligation_id=obligation.id,
            sub_obligation_id=sub.id,
            period=period,
        )
        metadata = TimelineMetadata(
            branch_id=client.branch_id,
            cadence=cadence.value,
            frequency_config=config.to_dict(),
            sub_obligation={
                "id": sub.id,
                "name": sub.name,
                "frequency": sub.cadence,
                "fields": [{"name": f.name, "type": f.type} for f in sub.fields],
            },
            financial_year=financial_year_for(now).label,
            fields=[
                {"field_name": f.name, "field_type": f.type, "field_value": None}
                for f in sub.fields
            ],
            extra={"obligation_name": obligation.name, "client_name": client.name},
        )

        upsert = self.materializer.upsert(key, due_date, metadata)
        return upsert.created, key, due_date
