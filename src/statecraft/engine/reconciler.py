from __future__ import annotations

from statecraft.engine.context import RunContext
from statecraft.engine.lifecycle import LifecycleEngine
from statecraft.engine.results import ReconcileReport
from statecraft.state.models import ResourceRecord


class OrphanReconciler:
    """Deletes persisted resources that the current run no longer declares.

    Orphans are the records under the root prefix whose FQN was not declared
    in this run. They are removed in teardown order over their recorded
    dependencies; failures are reported, never rolled back.
    """

    def __init__(self, run: RunContext, engine: LifecycleEngine | None = None) -> None:
        self.run = run
        self.engine = engine or LifecycleEngine(run)

    async def find_orphans(self) -> dict[str, ResourceRecord]:
        records = await self.engine.records_under(self.run.root.prefix)
        return {fqn: record for fqn, record in records.items() if fqn not in self.run.resources}

    async def reconcile(self) -> ReconcileReport:
        orphans = await self.find_orphans()
        if not orphans:
            return ReconcileReport()

        self.run.log.info("orphans_found", count=len(orphans), orphans=sorted(orphans))
        report = await self.engine.delete_records(orphans)
        self.run.log.info(
            "orphans_reconciled",
            deleted=len(report.deleted),
            failed=len(report.failed),
            blocked=len(report.blocked),
        )
        return report
