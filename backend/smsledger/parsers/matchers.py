"""
Recognised bank/payment message shapes.

MATCHERS is the single, ordered catalogue: most specific shape first, the
generic fallback last. The first shape whose anchors are present wins.
"""

import re

from smsledger.models.transaction import TransactionDirection, TransactionMode
from smsledger.parsers.base import ShapeMatcher

UPI_MARKER = re.compile(r"\bupi\b", re.IGNORECASE)
UPI_OR_HANDLE = re.compile(r"\bupi\b|(?<![A-Za-z0-9._\-])[A-Za-z0-9._\-]{2,256}@[A-Za-z]{2,64}\b", re.IGNORECASE)
REFERENCE_MARKER = re.compile(r"\b(?:ref(?:erence)?|utr|rrn|txn\s*(?:id|no))\b", re.IGNORECASE)
CARD_MARKER = re.compile(r"\b(?:card|pos)\b", re.IGNORECASE)
ATM_MARKER = re.compile(r"\b(?:atm|cash\s+withdrawal|withdrawn)\b", re.IGNORECASE)
TRANSFER_MARKER = re.compile(r"\b(?:neft|imps|rtgs)\b", re.IGNORECASE)
ACCOUNT_MARKER = re.compile(r"\b(?:a/?c|acct|account)\b", re.IGNORECASE)
SENT_TO_MARKER = re.compile(r"\bsent\b.{0,80}?\bto\b", re.IGNORECASE)


class UpiDebitWithReference(ShapeMatcher):
    """'Rs.500.00 debited from A/c XX1234 on 05-01-25 to SHOP UPI Ref 123456789'"""
    name = "upi_debit_with_reference"
    specificity = 60
    anchors = (UPI_MARKER, REFERENCE_MARKER)
    direction = TransactionDirection.debit
    mode = TransactionMode.upi


class UpiSentWithReference(ShapeMatcher):
    """'Sent Rs.250.00 From HDFC Bank A/C *1234 To SWIGGY On 05/01/25 Ref 500512345678'"""
    name = "upi_sent_with_reference"
    specificity = 55
    anchors = (SENT_TO_MARKER, REFERENCE_MARKER)
    exclusions = (CARD_MARKER, ATM_MARKER, TRANSFER_MARKER)
    direction = TransactionDirection.debit
    mode = TransactionMode.upi


class UpiCredit(ShapeMatcher):
    """'You have received INR 1,200 in your account via UPI from john@bank'"""
    name = "upi_credit"
    specificity = 50
    anchors = (UPI_OR_HANDLE,)
    direction = TransactionDirection.credit
    mode = TransactionMode.upi


class AtmWithdrawal(ShapeMatcher):
    """'Rs 2,000 withdrawn at ATM S1AW1234 from A/c XX1234'"""
    name = "atm_withdrawal"
    specificity = 45
    anchors = (ATM_MARKER,)
    direction = TransactionDirection.debit
    mode = TransactionMode.cash
    merchant = "ATM"


class CardSpend(ShapeMatcher):
    """'Rs 1,499.00 spent on HDFC Bank Card XX4321 at AMAZON on 2025-01-05'"""
    name = "card_spend"
    specificity = 40
    anchors = (CARD_MARKER,)
    direction = TransactionDirection.debit
    mode = TransactionMode.card


class BankTransfer(ShapeMatcher):
    """'INR 25,000.00 credited to A/c XX9876 by NEFT from ACME PAYROLL'"""
    name = "bank_transfer"
    specificity = 30
    anchors = (TRANSFER_MARKER,)
    mode = TransactionMode.net_banking


class AccountDebitCredit(ShapeMatcher):
    """'A/c XX1234 debited by Rs 350 on 05Jan25 towards ELECTRICITY BILL'"""
    name = "account_debit_credit"
    specificity = 20
    anchors = (ACCOUNT_MARKER,)


class GenericPayment(ShapeMatcher):
    """Any message with a currency amount and a direction verb."""
    name = "generic_payment"
    specificity = 0


MATCHERS = (
    UpiDebitWithReference(),
    UpiSentWithReference(),
    UpiCredit(),
    AtmWithdrawal(),
    CardSpend(),
    BankTransfer(),
    AccountDebitCredit(),
    GenericPayment(),
)
