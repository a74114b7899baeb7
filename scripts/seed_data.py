#!/usr/bin/env python3
"""Populate the configured store with sample borrowers, loans and payments.

Uses MongoDB when ``MONGODB_URI`` is set, otherwise an in-memory store (useful
only as a dry run). Every generated loan is reconciled after its payments are
written, so cached balances match the payment history.
"""

import argparse
import logging
import random
import sys
import time
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loan_servicing.config import ServiceConfig
from loan_servicing.core.reconciliation import Reconciler
from loan_servicing.generators import (
    AgentGenerator,
    BorrowerGenerator,
    LoanGenerator,
    PaymentGenerator,
)
from loan_servicing.logging import setup_logging
from loan_servicing.models import ApprovalStatus, LoanStatus
from loan_servicing.sinks import NullSink, create_sink
from loan_servicing.store import create_store

logger = logging.getLogger("seed_data")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed the loan-servicing store with sample data")
    parser.add_argument(
        "--agents",
        type=int,
        default=5,
        help="Number of field agents to generate (default: 5)",
    )
    parser.add_argument(
        "--borrowers",
        type=int,
        default=100,
        help="Number of borrowers to generate (default: 100)",
    )
    parser.add_argument(
        "--pending-rate",
        type=float,
        default=0.10,
        help="Share of borrowers left awaiting approval (default: 0.10)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility (default: SEED env var)",
    )
    parser.add_argument(
        "--emit-events",
        action="store_true",
        help="Send reconciliation events to the configured sink",
    )
    args = parser.parse_args()

    config = ServiceConfig.from_env()
    setup_logging(config.effective_log_level, config.log_format)
    seed = args.seed if args.seed is not None else config.seed

    store = create_store(config)
    sink = create_sink(config) if args.emit_events else NullSink()
    reconciler = Reconciler(store, sink)

    agent_gen = AgentGenerator(seed=seed)
    borrower_gen = BorrowerGenerator(seed=seed)
    loan_gen = LoanGenerator(seed=seed)
    payment_gen = PaymentGenerator(seed=seed)

    start = time.time()
    now = datetime.now()

    agents = list(agent_gen.generate_batch(args.agents))
    for agent in agents:
        store.add_agent(agent)
    logger.info("Generated %d agents", len(agents))

    loan_ids = []
    payment_count = 0
    for _ in range(args.borrowers):
        agent = random.choice(agents)
        pending = random.random() < args.pending_rate
        borrower = borrower_gen.generate(
            assigned_agent=agent.agent_id,
            approval_status=ApprovalStatus.PENDING if pending else ApprovalStatus.APPROVED,
            reference_date=now,
        )
        store.add_borrower(borrower)

        loan = loan_gen.generate(borrower)
        if pending:
            loan.status = LoanStatus.PENDING
        store.add_loan(loan)
        loan_ids.append(loan.loan_id)

        if not pending:
            for payment in payment_gen.generate_history(loan, agent.agent_id, as_of=now):
                store.add_payment(payment)
                payment_count += 1

    reconciled = reconciler.reconcile_many(loan_ids)
    paid = sum(1 for loan in reconciled if loan.status == LoanStatus.PAID)

    sink.close()
    summary = store.summary()
    store.close()

    elapsed = time.time() - start
    print("\nSeed complete")
    print(f"  Store:     {type(store).__name__}")
    for entity, count in summary.items():
        print(f"  {entity.capitalize():<10} {count:,}")
    print(f"  Payments written: {payment_count:,}")
    print(f"  Loans fully paid: {paid:,}")
    print(f"  Elapsed:   {elapsed:.2f}s")


if __name__ == "__main__":
    main()
