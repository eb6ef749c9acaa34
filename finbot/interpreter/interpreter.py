"""
Transaction Interpreter

Turns one free-form message into a candidate transaction awaiting
confirmation.

FLOW:
1. Normalize the message
2. Detect the type (hard-coded literals first, then the dictionary)
3. Extract the amount
4. Transfers branch off to their own sub-flow
5. Resolve account and payment method
6. Resolve category/subcategory (constrained by the type)
7. Derive the description from what is left of the message
8. Extract the installment count
9. Compute the first due date (credit cards follow their billing cycle)
10. Store the candidate and report it as pending confirmation

CRITICAL: The interpreter NEVER writes to the ledger. It only proposes.
"""

import re
from datetime import date
from typing import Callable
from uuid import uuid4

from finbot.errors import (
    AmbiguousTypeError,
    AmountNotFoundError,
    TransferFormatError,
    UserInputError,
)
from finbot.interpreter.dictionary import KeywordDictionary
from finbot.ledger.billing_cycle import (
    DEFAULT_MAX_INSTALLMENTS,
    check_installment_count,
    due_date_for_purchase,
)
from finbot.ledger.pending import PendingConfirmationStore
from finbot.models.finance import (
    NOT_IDENTIFIED,
    Account,
    InterpretationResult,
    PendingCandidate,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from finbot.services.storage.repositories import AccountRepository, KeywordRepository
from finbot.text.normalizer import normalize, parse_brl_float


# First number in the message that is not an installment count ("3x", "10 vezes")
AMOUNT_PATTERN = re.compile(
    r"(?<![\w.,])(\d[\d.,]*\d|\d)(?![\d.,]?\d)(?!\s*(?:x|vezes)\b)"
)
THOUSANDS_ONLY = re.compile(r"\d{1,3}(?:\.\d{3})+")
INSTALLMENT_PATTERN = re.compile(r"\b(\d+)\s*(?:x|vezes)\b")
INSTALLMENT_PHRASE = re.compile(r"\b(?:em\s+)?\d+\s*(?:x|vezes)\b")
TRANSFER_PATTERN = re.compile(r"\b(?:de|do|da)\s+(.+?)\s+(?:para|pra)\s+(.+)$")

# Stray words left at the edges of a description once keywords are removed
EDGE_STOPWORDS = frozenset({
    "a", "ao", "aos", "as", "com", "da", "das", "de", "do", "dos", "e",
    "em", "na", "nas", "no", "nos", "o", "os", "para", "pela", "pelo",
    "por", "pra", "r", "um", "uma",
})

CREDIT_METHOD = "Crédito"
TRANSFER_METHOD = "Transferência"
TRANSFER_CATEGORY = ("Transferências", "Entre Contas")
INVOICE_PAYMENT_CATEGORY = ("Contas a Pagar", "Pagamento de Fatura")


def extract_amount(text: str) -> tuple[float, str]:
    """
    First monetary amount in the (lowercased, un-normalized) text.

    Returns:
        (value, matched text)

    Raises:
        AmountNotFoundError: If there is no positive amount
    """
    match = AMOUNT_PATTERN.search(text.lower())
    if match is None:
        raise AmountNotFoundError("Não encontrei o valor na mensagem.")
    raw = match.group(1)
    # "1.500" typed by a person is fifteen hundred, not one and a half
    number = raw.replace(".", "") if THOUSANDS_ONLY.fullmatch(raw) else raw
    try:
        value = parse_brl_float(number)
    except ValueError:
        raise AmountNotFoundError(f"Não entendi o valor '{raw}'.")
    if value <= 0:
        raise AmountNotFoundError("O valor precisa ser maior que zero.")
    return value, raw


def extract_installments(normalized: str, limit: int = DEFAULT_MAX_INSTALLMENTS) -> int:
    """
    Installment count from "3x" or "3 vezes"; 1 when absent.

    Raises:
        InstallmentCountError: If the count is above the limit
    """
    match = INSTALLMENT_PATTERN.search(normalized)
    if match is None:
        return 1
    return check_installment_count(max(int(match.group(1)), 1), limit)


def derive_description(
    normalized: str,
    amount_text: str,
    removed_keywords: list[str],
    placeholder: str,
    min_length: int = 3,
) -> str:
    """
    What the message says besides the structured parts.

    Removes the amount, the type/account/payment-method keywords and any
    installment phrase, then trims prepositions at the edges. The
    category keyword stays: it is usually the best description.
    """
    text = normalized
    amount_key = normalize(amount_text)
    if amount_key:
        text = re.sub(rf"\b(?:r\s+)?{re.escape(amount_key)}\b", " ", text, count=1)
    for keyword in removed_keywords:
        if keyword:
            text = text.replace(keyword, " ", 1)
    text = INSTALLMENT_PHRASE.sub(" ", text)

    words = text.split()
    while words and words[0] in EDGE_STOPWORDS:
        words.pop(0)
    while words and words[-1] in EDGE_STOPWORDS:
        words.pop()

    description = " ".join(words)
    if len(description) < min_length:
        return placeholder
    return description[0].upper() + description[1:]


class TransactionInterpreter:
    """
    Builds candidates from messages and parks them in the pending store.

    The dictionary and accounts are reloaded for every message so edits to
    the sheet take effect immediately.
    """

    def __init__(
        self,
        keyword_repository: KeywordRepository,
        account_repository: AccountRepository,
        pending_store: PendingConfirmationStore,
        today: Callable[[], date] = date.today,
        placeholder_description: str = "Lançamento",
        min_description_length: int = 3,
        max_installments: int = DEFAULT_MAX_INSTALLMENTS,
    ):
        self._keywords = keyword_repository
        self._accounts = account_repository
        self._pending = pending_store
        self._today = today
        self._placeholder = placeholder_description
        self._min_description_length = min_description_length
        self._max_installments = max_installments

    async def load_dictionary(self) -> KeywordDictionary:
        rules = await self._keywords.list_rules()
        accounts = await self._accounts.list_accounts()
        return KeywordDictionary(rules, accounts)

    async def interpret(self, message: str, chat_id: str, user: str) -> InterpretationResult:
        """
        Interpret one message.

        User mistakes come back as an error result; storage and
        configuration problems propagate to the caller.
        """
        dictionary = await self.load_dictionary()
        try:
            candidate = self.build_candidate(message, dictionary, chat_id, user)
        except UserInputError as e:
            text = str(e)
            if e.hint:
                text = f"{text}\n{e.hint}"
            return InterpretationResult.error(text)

        await self._pending.put(candidate)
        return InterpretationResult.pending(candidate)

    def build_candidate(
        self,
        message: str,
        dictionary: KeywordDictionary,
        chat_id: str,
        user: str,
    ) -> PendingCandidate:
        """
        Pure interpretation step (no storage).

        Raises:
            UserInputError: For any message that cannot become a candidate
        """
        normalized = normalize(message)

        kind, type_keyword = dictionary.detect_type(normalized)
        if kind is None:
            raise AmbiguousTypeError(
                "Não consegui identificar se é uma despesa, receita ou transferência.",
                hint='Tente algo como "gastei 50 no mercado" ou "recebi 1000 de salário".',
            )

        amount, amount_text = extract_amount(message)

        if kind == TransactionKind.TRANSFER:
            return self._build_transfer(normalized, amount, dictionary, chat_id, user)

        today = self._today()

        account, account_keyword = dictionary.match_account(normalized)
        method_match = dictionary.match_payment_method(normalized)
        payment_method = method_match.value
        if account is not None and account.is_credit_card:
            if payment_method == NOT_IDENTIFIED or normalize(payment_method) == "debito":
                payment_method = CREDIT_METHOD

        category = dictionary.match_category(normalized, kind)

        description = derive_description(
            normalized,
            amount_text,
            [type_keyword, account_keyword, method_match.keyword],
            self._placeholder,
            self._min_description_length,
        )

        installments = extract_installments(normalized, self._max_installments)

        if account is not None and account.is_credit_card:
            due_date = due_date_for_purchase(account, today)
        else:
            due_date = today

        base_id = str(uuid4())
        draft = Transaction(
            id=base_id,
            posted_date=today,
            description=description,
            category=category.category,
            subcategory=category.subcategory,
            kind=kind,
            amount=amount,
            payment_method=payment_method,
            account=account.name if account is not None else NOT_IDENTIFIED,
            installment_count=installments,
            installment_index=1,
            due_date=due_date,
            owner=user,
            status=TransactionStatus.ACTIVE,
        )
        return PendingCandidate(chat_id=chat_id, transaction_id=base_id, drafts=[draft])

    def _build_transfer(
        self,
        normalized: str,
        amount: float,
        dictionary: KeywordDictionary,
        chat_id: str,
        user: str,
    ) -> PendingCandidate:
        match = TRANSFER_PATTERN.search(normalized)
        if match is None:
            raise TransferFormatError(
                "Não entendi a transferência.",
                hint='Use o formato: "transferi 100 de <conta origem> para <conta destino>".',
            )

        source = self._resolve_side(dictionary, match.group(1), "origem")
        destination = self._resolve_side(dictionary, match.group(2), "destino")
        if source.normalized_name == destination.normalized_name:
            raise TransferFormatError("A conta de origem e a de destino são a mesma.")

        if destination.is_credit_card:
            category, subcategory = INVOICE_PAYMENT_CATEGORY
        else:
            category, subcategory = TRANSFER_CATEGORY

        today = self._today()
        base_id = str(uuid4())
        description = f"Transferência de {source.name} para {destination.name}"
        legs = [
            Transaction(
                id=base_id,
                posted_date=today,
                description=description,
                category=category,
                subcategory=subcategory,
                kind=kind,
                amount=amount,
                payment_method=TRANSFER_METHOD,
                account=account.name,
                due_date=today,
                owner=user,
            )
            for kind, account in (
                (TransactionKind.EXPENSE, source),
                (TransactionKind.INCOME, destination),
            )
        ]
        return PendingCandidate(
            chat_id=chat_id,
            transaction_id=base_id,
            drafts=legs,
            is_transfer=True,
        )

    @staticmethod
    def _resolve_side(dictionary: KeywordDictionary, fragment: str, side: str) -> Account:
        account, _ = dictionary.match_account(fragment)
        if account is None:
            raise TransferFormatError(
                f"Conta de {side} não identificada: '{fragment.strip()}'."
            )
        return account
