"""
Offline match provider used when no AI API key is configured.

Pairs records by amount only, with fixed confidences, so the suggestion
workflow can be exercised in development without a network call.
"""

from typing import List, Sequence, Set

import structlog
from rapidfuzz import fuzz

from ..models import BankTransaction, LedgerTransaction, MatchedPair
from ..money import format_currency

logger = structlog.get_logger()


class HeuristicMatchProvider:
    """
    Two passes:
    1. Position-aligned pairs among the first `head` records whose absolute
       amounts agree within 10% (at least $1), confidence 0.92 falling by
       0.05 per position.
    2. Exact absolute-amount pairs among records `head` to `tail`,
       confidence 0.95.
    No ledger or bank id is used twice.
    """

    def __init__(self, head: int = 3, tail: int = 6):
        self.head = head
        self.tail = tail

    async def suggest_matches(
        self,
        ledger: Sequence[LedgerTransaction],
        bank: Sequence[BankTransaction],
    ) -> List[MatchedPair]:
        matches: List[MatchedPair] = []
        used_ledger: Set[str] = set()
        used_bank: Set[str] = set()

        for i in range(min(len(ledger), len(bank), self.head)):
            ledger_txn, bank_txn = ledger[i], bank[i]
            amount_diff = abs(ledger_txn.abs_amount_cents - bank_txn.abs_amount_cents)
            threshold = max(ledger_txn.abs_amount_cents // 10, 100)

            if amount_diff <= threshold:
                matches.append(MatchedPair(
                    ledger_transaction_id=ledger_txn.id,
                    bank_transaction_ids=(bank_txn.id,),
                    confidence_score=round(0.92 - i * 0.05, 2),
                    reasoning=(
                        f"Amount match: {format_currency(ledger_txn.amount_cents)} ~ "
                        f"{format_currency(bank_txn.amount_cents)}. "
                        f"{self._text_note(ledger_txn, bank_txn)}"
                    ),
                ))
                used_ledger.add(ledger_txn.id)
                used_bank.add(bank_txn.id)

        if len(ledger) > self.head and len(bank) > self.head:
            for ledger_txn in ledger[self.head:self.tail]:
                if ledger_txn.id in used_ledger:
                    continue
                for bank_txn in bank[self.head:self.tail]:
                    if bank_txn.id in used_bank:
                        continue
                    if ledger_txn.abs_amount_cents == bank_txn.abs_amount_cents:
                        matches.append(MatchedPair(
                            ledger_transaction_id=ledger_txn.id,
                            bank_transaction_ids=(bank_txn.id,),
                            confidence_score=0.95,
                            reasoning=(
                                f"Exact amount match: {format_currency(ledger_txn.abs_amount_cents)}. "
                                f"{self._text_note(ledger_txn, bank_txn)}"
                            ),
                        ))
                        used_ledger.add(ledger_txn.id)
                        used_bank.add(bank_txn.id)
                        break

        logger.info("Heuristic match suggestions", pairs=len(matches))
        return matches

    @staticmethod
    def _text_note(ledger_txn: LedgerTransaction, bank_txn: BankTransaction) -> str:
        ledger_text = f"{ledger_txn.money_type.value} {ledger_txn.payment_type}".strip()
        score = fuzz.token_set_ratio(ledger_text.lower(), bank_txn.description.lower())
        days = abs((ledger_txn.transaction_date - bank_txn.transaction_date).days)
        return f"{days} day(s) apart, description similarity {score:.0f}%."
