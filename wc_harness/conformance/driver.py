"""Issue described commands through the cluster router."""

from __future__ import annotations

from typing import TYPE_CHECKING

from wc_harness.conformance.catalog import CommandDescriptor
from wc_harness.conformance.domain import RawResult, WriteConcern
from wc_harness.core.logging import get_logger, redact_command

if TYPE_CHECKING:
    from wc_harness.cluster.connection import ClusterConnections

logger = get_logger("conformance.driver")


class ClusterDriver:
    """
    Run one command per call against the router and return the raw reply.

    The reply is never validated here: ok:0 replies and writeConcernError
    fields are handed back untouched for the verifier to classify.
    """

    def __init__(self, cluster: "ClusterConnections"):
        self.cluster = cluster
        self.last_request: dict | None = None

    def execute(
        self,
        descriptor: CommandDescriptor,
        write_concern: WriteConcern,
        db_name: str,
    ) -> RawResult:
        request = descriptor.build_request(write_concern.to_document())
        target = "admin" if descriptor.admin else db_name
        self.last_request = request

        logger.info("Running %s on %s", redact_command(request), target)
        reply = self.cluster.database(target).command(request, check=False)
        result = RawResult.from_reply(reply)
        logger.info("Reply for %s: %s", descriptor.name, result.describe())
        return result
