"""
Auction actions accepted by POST /api/{id}/state.

The body is a tagged union keyed by "action". Each variant is a pydantic
model; parse_action() validates a raw JSON body into one of them.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .. import config
from .errors import ValidationError


class ActionBase(BaseModel):
    """Fields shared by every action."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    expected_version: Optional[int] = Field(
        None, alias='expectedVersion', ge=0,
        description="Reject the action if the ledger has moved past this version"
    )


class StartAuctionAction(ActionBase):
    action: Literal['START_AUCTION']
    player_id: str = Field(..., alias='playerId', min_length=1)


class SoldAction(ActionBase):
    action: Literal['SOLD']
    team_id: str = Field(..., alias='teamId', min_length=1)
    sold_price: int = Field(..., alias='soldPrice', gt=0, multiple_of=config.PRICE_STEP)


class UnsoldAction(ActionBase):
    action: Literal['UNSOLD']


class PauseAction(ActionBase):
    action: Literal['PAUSE']
    message: Optional[str] = Field(None, max_length=config.MAX_PAUSE_MESSAGE_LENGTH)
    duration: Optional[int] = Field(None, ge=0, le=config.MAX_PAUSE_SECONDS, description="Seconds")


class UnpauseAction(ActionBase):
    action: Literal['UNPAUSE']


class ClearAction(ActionBase):
    action: Literal['CLEAR']


class JokerAction(ActionBase):
    action: Literal['JOKER']
    team_id: str = Field(..., alias='teamId', min_length=1)


class CorrectAction(ActionBase):
    action: Literal['CORRECT']
    player_id: str = Field(..., alias='playerId', min_length=1)
    from_team_id: str = Field(..., alias='fromTeamId', min_length=1)
    to_team_id: str = Field(..., alias='toTeamId', min_length=1)


class RandomAction(ActionBase):
    action: Literal['RANDOM']


class ResetAction(ActionBase):
    action: Literal['RESET']
    confirm_reset: Literal[True] = Field(..., alias='confirmReset')


class VerifyAction(ActionBase):
    action: Literal['VERIFY']


ACTION_TYPES = (
    StartAuctionAction,
    SoldAction,
    UnsoldAction,
    PauseAction,
    UnpauseAction,
    ClearAction,
    JokerAction,
    CorrectAction,
    RandomAction,
    ResetAction,
    VerifyAction,
)

# Actions that never change the ledger and stay allowed on read-only tournaments
READ_ONLY_ACTIONS = (RandomAction, VerifyAction)

AuctionAction = Annotated[
    Union[ACTION_TYPES],
    Field(discriminator='action'),
]

_ACTION_ADAPTER = TypeAdapter(AuctionAction)


def format_validation_errors(error: PydanticValidationError, tagged: bool = False) -> str:
    """Flatten pydantic errors into 'field: message; ...'."""
    parts = []
    for err in error.errors():
        loc = tuple(err.get('loc', ()))
        # Discriminated unions prefix the path with the tag
        if tagged and len(loc) > 1:
            loc = loc[1:]
        path = '.'.join(str(p) for p in loc)
        parts.append(f"{path}: {err['msg']}" if path else err['msg'])
    return '; '.join(parts)


def parse_action(body: Any):
    """
    Validate a JSON body into an action variant.

    Raises:
        ValidationError: If the body does not match any action schema
    """
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object', field='body')

    try:
        return _ACTION_ADAPTER.validate_python(body)
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e, tagged=True), field='action')
