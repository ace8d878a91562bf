"""Reconciliation engine: turns a product draft into remote calls.

The backend has no multi-entity transaction, so a save is a fixed
sequence of independent calls:

    1. update product fields (only the changed ones)
    2. delete removed general images
    3. upload staged general images
    4. per existing variant: delete it, or update fields / delete its
       removed image / set its staged image
    5. create complete new variants (image included in the same call)

Steps run in that order. Inside a step the calls are independent and run
concurrently on a thread pool; the calls for one existing variant run in
order. A failed call never stops the others: every failure is collected
into the `CommitResult`, and the session closes either way. Callers
re-fetch the product afterwards; the engine keeps no cache.
"""

import itertools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from inventory.assets import PreviewStore
from inventory.config import COMMIT_MAX_WORKERS
from inventory.draft import DraftSnapshot, ProductDraft
from inventory.logging_config import get_logger, log_commit_event
from inventory.models import Product
from inventory.variants import SessionClosedError

__all__ = [
    "OPEN",
    "COMMITTING",
    "CLOSED_SUCCESS",
    "CLOSED_PARTIAL_FAILURE",
    "DISCARDED",
    "STEP_NAMES",
    "Operation",
    "Step",
    "CommitError",
    "CommitResult",
    "SessionClosedError",
    "EditSession",
    "plan_operations",
    "ReconciliationEngine",
]

logger = get_logger("reconcile")

# Session states
OPEN = "open"
COMMITTING = "committing"
CLOSED_SUCCESS = "closed_success"
CLOSED_PARTIAL_FAILURE = "closed_partial_failure"
DISCARDED = "discarded"

STEP_NAMES = {
    1: "product_fields",
    2: "delete_general_images",
    3: "upload_general_images",
    4: "existing_variants",
    5: "new_variants",
}


@dataclass(frozen=True)
class Operation:
    """One planned API call: `api.<method>(*args, **params)`."""

    seq: int
    step: int
    method: str
    args: Tuple[Any, ...]
    params: Dict[str, Any] = field(default_factory=dict)
    target: str = ""

    def describe(self) -> str:
        return f"{self.method}({self.target})" if self.target else self.method

    def run(self, api) -> Any:
        return getattr(api, self.method)(*self.args, **self.params)


Chain = Tuple[Operation, ...]


@dataclass(frozen=True)
class Step:
    number: int
    chains: Tuple[Chain, ...]

    @property
    def name(self) -> str:
        return STEP_NAMES[self.number]

    @property
    def operations(self) -> List[Operation]:
        return [op for chain in self.chains for op in chain]


@dataclass(frozen=True)
class CommitError:
    operation: Operation
    error: Exception

    @property
    def message(self) -> str:
        return f"{self.operation.describe()}: {self.error}"


@dataclass(frozen=True)
class CommitResult:
    succeeded: bool
    errors: Tuple[CommitError, ...] = ()
    operations: int = 0

    @property
    def first_error(self) -> Optional[CommitError]:
        return self.errors[0] if self.errors else None

    def summary(self) -> str:
        """The single message shown to the operator."""
        if self.succeeded:
            if not self.operations:
                return "No changes to save."
            return f"Saved {self.operations} change(s)."
        if not self.errors:
            return "Saving failed before any change was sent. Reload the product and try again."
        failed = len(self.errors)
        partial = "partially failed" if failed < self.operations else "failed"
        return (
            f"Saving {partial}: {failed} of {self.operations} change(s) could not be applied "
            f"(first error: {self.errors[0].message}). "
            f"Reload the product and retry the remaining edits."
        )


class EditSession:
    """One product edit: open -> committing -> closed.

    The draft belongs to this session alone. A closed session never
    reopens; start a new one from freshly fetched data to retry.
    """

    def __init__(self, product: Product, previews: PreviewStore):
        self.product = product
        self.draft = ProductDraft(product, previews)
        self.state = OPEN
        self.result: Optional[CommitResult] = None
        self._lock = threading.Lock()

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def is_open(self) -> bool:
        return self.state == OPEN

    @property
    def is_closed(self) -> bool:
        return self.state in (CLOSED_SUCCESS, CLOSED_PARTIAL_FAILURE, DISCARDED)

    def _transition(self, expected: str, new_state: str) -> None:
        with self._lock:
            if self.state != expected:
                raise SessionClosedError(
                    f"Edit session for product {self.product_id} is {self.state}, expected {expected}"
                )
            self.state = new_state


def plan_operations(snapshot: DraftSnapshot) -> List[Step]:
    """Ordered remote calls implied by a draft snapshot.

    Steps without calls are left out, so an unchanged draft plans nothing.
    """
    product_id = snapshot.product_id
    counter = itertools.count(1)
    steps: List[Step] = []

    def op(step: int, method: str, *args: Any, target: str = "", **params: Any) -> Operation:
        return Operation(next(counter), step, method, args, params, target)

    def add(number: int, chains: List[Chain]) -> None:
        chains = [chain for chain in chains if chain]
        if chains:
            steps.append(Step(number, tuple(chains)))

    fields = snapshot.changed_fields()
    if fields:
        add(1, [(op(1, "update_product_fields", product_id, fields, target=f"product {product_id}"),)])

    add(2, [
        (op(2, "delete_image", image_id, target=f"image {image_id}"),)
        for image_id in snapshot.removed_image_ids
    ])

    add(3, [
        (op(3, "add_image", product_id, binary, target=binary.filename),)
        for binary in snapshot.staged_images
    ])

    variant_chains: List[Chain] = []
    for draft in snapshot.existing_variants:
        target = f"variant {draft.remote_id}"
        if draft.marked_for_delete:
            variant_chains.append((op(4, "delete_variant", draft.remote_id, target=target),))
            continue
        chain: List[Operation] = []
        changes = draft.changed_fields()
        if changes:
            chain.append(op(4, "update_variant_fields", draft.remote_id, changes, target=target))
        if draft.image.removed_id:
            chain.append(op(4, "delete_image", draft.image.removed_id, target=f"image {draft.image.removed_id}"))
        if draft.image.is_staged:
            chain.append(op(4, "set_variant_image", draft.remote_id, product_id, draft.image.binary, target=target))
        variant_chains.append(tuple(chain))
    add(4, variant_chains)

    new_chains: List[Chain] = []
    for draft in snapshot.new_variants:
        if not draft.is_complete:
            continue
        key = draft.option_key.strip()
        value = draft.option_value.strip()
        new_chains.append((
            op(
                5,
                "create_variant",
                product_id,
                target=f"{key}: {value}",
                option_key=key,
                option_value=value,
                price=draft.price if draft.price is not None else 0,
                stock=draft.stock if draft.stock is not None else 0,
                binary=draft.image.binary if draft.image.is_staged else None,
            ),
        ))
    add(5, new_chains)

    return steps


class ReconciliationEngine:
    """Opens edit sessions and commits them against the product API."""

    def __init__(
        self,
        api,
        previews: Optional[PreviewStore] = None,
        max_workers: int = COMMIT_MAX_WORKERS,
    ):
        self.api = api
        self.previews = previews or PreviewStore()
        self.max_workers = max(1, max_workers)

    def begin_edit(self, product: Product) -> EditSession:
        logger.debug(f"Opening edit session for product {product.id}")
        return EditSession(product, self.previews)

    def plan(self, session: EditSession) -> List[Step]:
        return plan_operations(session.draft.snapshot())

    def discard(self, session: EditSession) -> None:
        """Cancel an open session: release previews, no remote calls."""
        session._transition(OPEN, DISCARDED)
        session.draft.close()
        session.draft.release_previews()
        logger.debug(f"Discarded edit session for product {session.product_id}")

    def commit(self, session: EditSession) -> CommitResult:
        """Execute the session's plan and close it.

        The draft stops accepting edits as soon as the commit starts. If
        planning itself fails the session still closes, as a failure, and
        the exception propagates.

        Raises:
            SessionClosedError: If the session is already committing or closed
        """
        session._transition(OPEN, COMMITTING)
        session.draft.close()
        product_id = session.product_id

        errors: List[CommitError] = []
        total = 0
        completed = False
        try:
            steps = plan_operations(session.draft.snapshot())
            total = sum(len(step.operations) for step in steps)
            log_commit_event(
                "commit_started",
                f"Committing {total} operation(s) for product {product_id}",
                product_id=product_id,
                operations=total,
                steps=[step.name for step in steps],
            )
            if steps:
                with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                    for step in steps:
                        futures = [pool.submit(self._run_chain, chain, product_id) for chain in step.chains]
                        for future in as_completed(futures):
                            errors.extend(future.result())
            completed = True
        finally:
            errors.sort(key=lambda e: e.operation.seq)
            result = CommitResult(succeeded=completed and not errors, errors=tuple(errors), operations=total)
            session.result = result
            session.state = CLOSED_SUCCESS if result.succeeded else CLOSED_PARTIAL_FAILURE
            session.draft.release_previews()

        log_commit_event(
            "commit_finished",
            result.summary(),
            product_id=product_id,
            succeeded=result.succeeded,
            operations=total,
            failed=len(errors),
        )
        return result

    def _run_chain(self, chain: Chain, product_id: str) -> List[CommitError]:
        """Run one chain in order; a failure does not stop the rest of it."""
        errors: List[CommitError] = []
        for operation in chain:
            trace = {
                "product_id": product_id,
                "step": operation.step,
                "method": operation.method,
                "target": operation.target,
            }
            try:
                operation.run(self.api)
            except Exception as e:
                errors.append(CommitError(operation, e))
                log_commit_event(
                    "operation_failed",
                    f"{operation.describe()} failed: {e}",
                    level=logging.ERROR,
                    error=str(e),
                    status_code=getattr(e, "status_code", None),
                    **trace,
                )
                continue
            log_commit_event("operation_ok", f"{operation.describe()} ok", level=logging.DEBUG, **trace)
        return errors
