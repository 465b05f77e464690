"""
Journal templates -- business documents to balanced journal lines.

Responsibility:
    Each ``SourceType`` maps to one pure function
    ``(TemplateContext, DefaultAccountTable) -> list[LineRequest]`` that
    produces a balanced set of lines (two lines, or more when a tax or fee
    split is present).  Accounts the caller did not choose are filled from
    ``DefaultAccountTable``, a data-driven lookup keyed on source type and
    category.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Consumed by
    ``JournalService.post_template``; the table itself is built from YAML
    by ``ledger_config.load_account_mappings``.

Invariants enforced:
    - Every template returns lines whose debits equal their credits.
    - Lookup is side-effect free: same (source type, category, memo) always
      yields the same accounts.

Failure modes:
    - TemplateError when the context is missing an account the variant
      cannot default (TRANSFER, INVENTORY_ADJUSTMENT), when the amount is
      not positive, when a fee exceeds the amount it is deducted from, or
      when the source type is unknown.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Callable, Mapping

from ledger_kernel.db.types import ZERO, to_decimal
from ledger_kernel.domain.dtos import LineRequest, PostingRequest
from ledger_kernel.exceptions import TemplateError
from ledger_kernel.models.journal import SourceType


def parse_source_type(value: SourceType | str) -> SourceType:
    try:
        return SourceType(value)
    except ValueError:
        raise TemplateError(str(value), "unknown source type")


@dataclass(frozen=True)
class AccountPair:
    """Category account plus the asset/liability it is settled through."""

    account: str
    payment_account: str


@dataclass(frozen=True)
class CategoryMap:
    """Per-direction lookup: exact categories, keywords, fallback."""

    fallback: AccountPair
    categories: Mapping[str, AccountPair] = field(default_factory=dict)
    keywords: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        normalized = {k.strip().lower(): v for k, v in self.categories.items()}
        object.__setattr__(self, "categories", MappingProxyType(normalized))
        object.__setattr__(
            self,
            "keywords",
            tuple((kw.lower(), code) for kw, code in self.keywords),
        )

    def lookup(self, category: str | None, memo: str | None = None) -> AccountPair:
        if category:
            exact = self.categories.get(category.strip().lower())
            if exact is not None:
                return exact
        haystacks = [text.lower() for text in (category, memo) if text]
        for text in haystacks:
            for keyword, code in self.keywords:
                if keyword in text:
                    return AccountPair(code, self.fallback.payment_account)
        return self.fallback


@dataclass(frozen=True)
class DefaultAccountTable:
    """
    Data-driven default-account lookup.

    Contract:
        Pure and immutable.  ``system_accounts`` names the fixed accounts
        templates fall back to by role (inventory, payables, vat_output,
        bank_charges, ...).
    """

    expense: CategoryMap
    income: CategoryMap
    payment_methods: Mapping[str, str] = field(default_factory=dict)
    system_accounts: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "payment_methods",
            MappingProxyType({k.lower(): v for k, v in self.payment_methods.items()}),
        )
        object.__setattr__(
            self, "system_accounts", MappingProxyType(dict(self.system_accounts))
        )

    def system_account(self, role: str) -> str:
        try:
            return self.system_accounts[role]
        except KeyError:
            raise TemplateError("lookup", f"no system account configured for role '{role}'")

    def payment_account(self, method: str | None, fallback: str) -> str:
        if method is None:
            return fallback
        return self.payment_methods.get(method.lower(), fallback)

    def default_debit_account(
        self, source_type: SourceType | str, category: str | None, memo: str | None = None
    ) -> str:
        """Account debited when the caller leaves the choice to the ledger."""
        source_type = parse_source_type(source_type)
        if source_type in (SourceType.EXPENSE, SourceType.CHEQUE):
            return self.expense.lookup(category, memo).account
        if source_type == SourceType.INCOME:
            return self.income.lookup(category, memo).payment_account
        if source_type == SourceType.DEPOSIT:
            return self.system_account("bank")
        if source_type == SourceType.INVOICE:
            return self.system_account("receivables")
        if source_type == SourceType.PURCHASE:
            return self.system_account("inventory")
        if source_type == SourceType.INVOICE_PAYMENT:
            return self.system_account("bank")
        if source_type == SourceType.SUPPLIER_PAYMENT:
            return self.system_account("payables")
        raise TemplateError(source_type.value, "debit account must be chosen explicitly")

    def default_credit_account(
        self, source_type: SourceType | str, category: str | None, memo: str | None = None
    ) -> str:
        """Account credited when the caller leaves the choice to the ledger."""
        source_type = parse_source_type(source_type)
        if source_type == SourceType.EXPENSE:
            return self.expense.lookup(category, memo).payment_account
        if source_type == SourceType.CHEQUE:
            return self.system_account("bank")
        if source_type == SourceType.INCOME:
            return self.income.lookup(category, memo).account
        if source_type == SourceType.DEPOSIT:
            return self.system_account("undeposited_funds")
        if source_type == SourceType.INVOICE:
            return self.system_account("sales")
        if source_type == SourceType.PURCHASE:
            return self.system_account("payables")
        if source_type == SourceType.INVOICE_PAYMENT:
            return self.system_account("receivables")
        if source_type == SourceType.SUPPLIER_PAYMENT:
            return self.system_account("bank")
        raise TemplateError(source_type.value, "credit account must be chosen explicitly")


@dataclass(frozen=True)
class TemplateContext:
    """
    Inputs a business document supplies to its template.

    ``amount`` is the principal (net of tax).  ``tax_amount`` is added on
    top for INVOICE/PURCHASE.  ``fee_amount`` is paid on top of outflows
    (EXPENSE, CHEQUE, TRANSFER, SUPPLIER_PAYMENT) and deducted from inflows
    (INCOME, DEPOSIT, INVOICE_PAYMENT).
    """

    entry_date: date
    amount: Decimal
    category: str | None = None
    memo: str | None = None
    source_id: str | None = None
    debit_account: str | None = None
    credit_account: str | None = None
    payment_method: str | None = None
    tax_amount: Decimal = ZERO
    fee_amount: Decimal = ZERO
    fee_account: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "tax_amount", to_decimal(self.tax_amount))
        object.__setattr__(self, "fee_amount", to_decimal(self.fee_amount))


TemplateFn = Callable[[TemplateContext, DefaultAccountTable], list[LineRequest]]


def _require_positive(source_type: SourceType, ctx: TemplateContext) -> None:
    if ctx.amount <= ZERO:
        raise TemplateError(source_type.value, f"amount must be positive, got {ctx.amount}")
    if ctx.tax_amount < ZERO or ctx.fee_amount < ZERO:
        raise TemplateError(source_type.value, "tax and fee amounts cannot be negative")


def _fee_account(ctx: TemplateContext, table: DefaultAccountTable) -> str:
    return ctx.fee_account or table.system_account("bank_charges")


def _outflow(
    source_type: SourceType,
    ctx: TemplateContext,
    table: DefaultAccountTable,
    debit: str,
    credit: str,
) -> list[LineRequest]:
    """Dr category, Dr fee; Cr paying account for the total."""
    lines = [LineRequest.dr(debit, ctx.amount, ctx.memo)]
    if ctx.fee_amount > ZERO:
        lines.append(LineRequest.dr(_fee_account(ctx, table), ctx.fee_amount, "Transaction fee"))
    lines.append(LineRequest.cr(credit, ctx.amount + ctx.fee_amount, ctx.memo))
    return lines


def _inflow(
    source_type: SourceType,
    ctx: TemplateContext,
    table: DefaultAccountTable,
    debit: str,
    credit: str,
) -> list[LineRequest]:
    """Dr receiving account net of fee, Dr fee; Cr source for the gross."""
    if ctx.fee_amount >= ctx.amount:
        raise TemplateError(
            source_type.value,
            f"fee {ctx.fee_amount} must be smaller than amount {ctx.amount}",
        )
    lines = [LineRequest.dr(debit, ctx.amount - ctx.fee_amount, ctx.memo)]
    if ctx.fee_amount > ZERO:
        lines.append(LineRequest.dr(_fee_account(ctx, table), ctx.fee_amount, "Transaction fee"))
    lines.append(LineRequest.cr(credit, ctx.amount, ctx.memo))
    return lines


def expense_lines(ctx: TemplateContext, table: DefaultAccountTable) -> list[LineRequest]:
    _require_positive(SourceType.EXPENSE, ctx)
    pair = table.expense.lookup(ctx.category, ctx.memo)
    debit = ctx.debit_account or pair.account
    credit = ctx.credit_account or table.payment_account(ctx.payment_method, pair.payment_account)
    return _outflow(SourceType.EXPENSE, ctx, table, debit, credit)


def cheque_lines(ctx: TemplateContext, table: DefaultAccountTable) -> list[LineRequest]:
    _require_positive(SourceType.CHEQUE, ctx)
    debit = ctx.debit_account or table.expense.lookup(ctx.category, ctx.memo).account
    credit = ctx.credit_account or table.system_account("bank")
    return _outflow(SourceType.CHEQUE, ctx, table, debit, credit)


def income_lines(ctx: TemplateContext, table: DefaultAccountTable) -> list[LineRequest]:
    _require_positive(SourceType.INCOME, ctx)
    pair = table.income.lookup(ctx.category, ctx.memo)
    debit = ctx.debit_account or table.payment_account(ctx.payment_method, pair.payment_account)
    credit = ctx.credit_account or pair.account
    return _inflow(SourceType.INCOME, ctx, table, debit, credit)


def deposit_lines(ctx: TemplateContext, table: DefaultAccountTable) -> list[LineRequest]:
    _require_positive(SourceType.DEPOSIT, ctx)
    debit = ctx.debit_account or table.system_account("bank")
    credit = ctx.credit_account or table.system_account("undeposited_funds")
    return _inflow(SourceType.DEPOSIT, ctx, table, debit, credit)


def transfer_lines(ctx: TemplateContext, table: DefaultAccountTable) -> list[LineRequest]:
    _require_positive(SourceType.TRANSFER, ctx)
    if not ctx.debit_account or not ctx.credit_account:
        raise TemplateError(
            SourceType.TRANSFER.value, "both source and destination accounts are required"
        )
    if ctx.debit_account == ctx.credit_account:
        raise TemplateError(
            SourceType.TRANSFER.value, "source and destination accounts must differ"
        )
    return _outflow(SourceType.TRANSFER, ctx, table, ctx.debit_account, ctx.credit_account)


def invoice_lines(ctx: TemplateContext, table: DefaultAccountTable) -> list[LineRequest]:
    """Dr Receivables (gross); Cr Sales (net), Cr VAT Payable (tax)."""
    _require_positive(SourceType.INVOICE, ctx)
    debit = ctx.debit_account or table.system_account("receivables")
    credit = ctx.credit_account or table.system_account("sales")
    lines = [LineRequest.dr(debit, ctx.amount + ctx.tax_amount, ctx.memo)]
    lines.append(LineRequest.cr(credit, ctx.amount, ctx.memo))
    if ctx.tax_amount > ZERO:
        lines.append(LineRequest.cr(table.system_account("vat_output"), ctx.tax_amount, "Output VAT"))
    return lines


def purchase_lines(ctx: TemplateContext, table: DefaultAccountTable) -> list[LineRequest]:
    """Dr Inventory (net), Dr VAT Receivable (tax); Cr Payables (gross)."""
    _require_positive(SourceType.PURCHASE, ctx)
    debit = ctx.debit_account or table.system_account("inventory")
    credit = ctx.credit_account or table.system_account("payables")
    lines = [LineRequest.dr(debit, ctx.amount, ctx.memo)]
    if ctx.tax_amount > ZERO:
        lines.append(LineRequest.dr(table.system_account("vat_input"), ctx.tax_amount, "Input VAT"))
    lines.append(LineRequest.cr(credit, ctx.amount + ctx.tax_amount, ctx.memo))
    return lines


def invoice_payment_lines(ctx: TemplateContext, table: DefaultAccountTable) -> list[LineRequest]:
    """Customer settles an invoice: Dr bank or cash net of fee, Dr fee; Cr Receivables."""
    _require_positive(SourceType.INVOICE_PAYMENT, ctx)
    debit = ctx.debit_account or table.payment_account(
        ctx.payment_method, table.system_account("bank")
    )
    credit = ctx.credit_account or table.system_account("receivables")
    return _inflow(SourceType.INVOICE_PAYMENT, ctx, table, debit, credit)


def supplier_payment_lines(ctx: TemplateContext, table: DefaultAccountTable) -> list[LineRequest]:
    """Settle a supplier bill: Dr Payables, Dr fee; Cr bank or cash for the total."""
    _require_positive(SourceType.SUPPLIER_PAYMENT, ctx)
    debit = ctx.debit_account or table.system_account("payables")
    credit = ctx.credit_account or table.payment_account(
        ctx.payment_method, table.system_account("bank")
    )
    return _outflow(SourceType.SUPPLIER_PAYMENT, ctx, table, debit, credit)


def inventory_adjustment_lines(
    ctx: TemplateContext, table: DefaultAccountTable
) -> list[LineRequest]:
    _require_positive(SourceType.INVENTORY_ADJUSTMENT, ctx)
    if not ctx.debit_account or not ctx.credit_account:
        raise TemplateError(
            SourceType.INVENTORY_ADJUSTMENT.value,
            "debit and credit accounts are required",
        )
    return [
        LineRequest.dr(ctx.debit_account, ctx.amount, ctx.memo),
        LineRequest.cr(ctx.credit_account, ctx.amount, ctx.memo),
    ]


TEMPLATES: Mapping[SourceType, TemplateFn] = MappingProxyType(
    {
        SourceType.EXPENSE: expense_lines,
        SourceType.INCOME: income_lines,
        SourceType.CHEQUE: cheque_lines,
        SourceType.DEPOSIT: deposit_lines,
        SourceType.TRANSFER: transfer_lines,
        SourceType.INVENTORY_ADJUSTMENT: inventory_adjustment_lines,
        SourceType.INVOICE: invoice_lines,
        SourceType.PURCHASE: purchase_lines,
        SourceType.INVOICE_PAYMENT: invoice_payment_lines,
        SourceType.SUPPLIER_PAYMENT: supplier_payment_lines,
    }
)


def build_lines(
    source_type: SourceType | str,
    ctx: TemplateContext,
    table: DefaultAccountTable,
) -> list[LineRequest]:
    return TEMPLATES[parse_source_type(source_type)](ctx, table)


def build_entry(
    source_type: SourceType | str,
    ctx: TemplateContext,
    table: DefaultAccountTable,
) -> PostingRequest:
    """Run the template for ``source_type`` and wrap the lines for posting."""
    source_type = parse_source_type(source_type)
    return PostingRequest(
        entry_date=ctx.entry_date,
        memo=ctx.memo,
        source_type=source_type,
        source_id=ctx.source_id,
        lines=tuple(build_lines(source_type, ctx, table)),
    )
