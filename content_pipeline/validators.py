import re

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from content_pipeline.exceptions import RoundValidationError
from content_pipeline.schemas import ROUND_ID_PATTERN, ROUND_OUTPUT_CONTRACTS

_ROUND_ID_RE = re.compile(ROUND_ID_PATTERN)


def format_field_path(loc) -> str:
    return ".".join(str(part) for part in loc)


class RoundValidator:
    """
    Checks a round's raw output against that round's output contract.

    Pure: no logging, no I/O. Unknown fields are ignored unless a contract
    forbids them. Failures are raised as RoundValidationError for the caller
    to turn into an outcome.
    """

    def __init__(self, contracts: dict[str, type[BaseModel]] | None = None):
        self.contracts = {
            str(round_id): contract
            for round_id, contract in (contracts or ROUND_OUTPUT_CONTRACTS).items()
        }

    def contract_for(self, round_id) -> type[BaseModel]:
        round_key = str(round_id)
        if not _ROUND_ID_RE.match(round_key):
            raise RoundValidationError(
                round_key, "round", f"round id must match {ROUND_ID_PATTERN}"
            )
        if round_key not in self.contracts:
            raise RoundValidationError(round_key, "round", "no output contract for this round")
        return self.contracts[round_key]

    def validate(self, round_id, candidate):
        contract = self.contract_for(round_id)

        if isinstance(candidate, BaseModel):
            candidate = candidate.model_dump()

        if not isinstance(candidate, dict):
            raise RoundValidationError(
                str(round_id),
                "",
                f"expected an object, got {type(candidate).__name__}",
            )

        try:
            return contract.model_validate(candidate)
        except PydanticValidationError as e:
            errors = e.errors(include_url=False)
            first_error = errors[0]
            raise RoundValidationError(
                str(round_id),
                format_field_path(first_error["loc"]),
                first_error["msg"],
                errors=[
                    {"field_path": format_field_path(error["loc"]), "reason": error["msg"]}
                    for error in errors
                ],
            ) from e
