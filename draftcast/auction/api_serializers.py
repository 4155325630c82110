"""
Request and response schemas for the HTTP API.

Request bodies are camelCase JSON; the models accept either the alias or
the field name. Unknown keys (e.g. "pin") are ignored so credentials can
ride along in the body.
"""

import re
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .. import config
from .actions import format_validation_errors
from .errors import ValidationError
from .models import Player, Team, TournamentSettings
from .validation import validate_entity_id, validate_external_url

HEX_COLOR = re.compile(r'^#[0-9a-fA-F]{6}$')

Model = TypeVar('Model', bound=BaseModel)


class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


def _check_url(value: Optional[str]) -> Optional[str]:
    result = validate_external_url(value)
    if not result.valid:
        raise ValueError(result.error)
    return value


def _check_id(value: str, entity_type: str) -> str:
    result = validate_entity_id(value, entity_type)
    if not result.valid:
        raise ValueError(result.error)
    return value


def _check_choice(value: str, options: List[str]) -> str:
    if value not in options:
        raise ValueError(f"Must be one of: {', '.join(options)}")
    return value


def _check_color(value: str) -> str:
    if not HEX_COLOR.match(value):
        raise ValueError('Must be a valid hex color')
    return value.lower()


def parse_body(model: Type[Model], body: Any) -> Model:
    """
    Validate a JSON body against a request model.

    Raises:
        ValidationError: With a flattened 'field: message' description
    """
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object', field='body')
    try:
        return model.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e), field='body')


# ========== Tournament Settings ==========

class BasePricesInput(RequestModel):
    APLUS: int = Field(config.DEFAULT_BASE_PRICES['APLUS'], ge=0, le=1_000_000)
    BASE: int = Field(config.DEFAULT_BASE_PRICES['BASE'], ge=0, le=500_000)


class SettingsInput(RequestModel):
    team_size: int = Field(config.DEFAULT_TEAM_SIZE, alias='teamSize', ge=4, le=20)
    base_prices: BasePricesInput = Field(default_factory=BasePricesInput, alias='basePrices')
    bid_increment: int = Field(config.DEFAULT_BID_INCREMENT, alias='bidIncrement', ge=50, le=10_000)
    currency: str = Field(config.DEFAULT_CURRENCY, max_length=10)
    enable_joker_card: bool = Field(True, alias='enableJokerCard')
    enable_intelligence: bool = Field(True, alias='enableIntelligence')
    custom_rules: Optional[str] = Field(None, alias='customRules', max_length=2000)

    def to_settings(self) -> TournamentSettings:
        return TournamentSettings(
            team_size=self.team_size,
            base_prices={'APLUS': self.base_prices.APLUS, 'BASE': self.base_prices.BASE},
            bid_increment=self.bid_increment,
            currency=self.currency,
            enable_joker_card=self.enable_joker_card,
            enable_intelligence=self.enable_intelligence,
            custom_rules=self.custom_rules,
        )


class BasePricesUpdate(RequestModel):
    APLUS: Optional[int] = Field(None, ge=0, le=1_000_000)
    BASE: Optional[int] = Field(None, ge=0, le=500_000)


class SettingsUpdate(RequestModel):
    team_size: Optional[int] = Field(None, alias='teamSize', ge=4, le=20)
    base_prices: Optional[BasePricesUpdate] = Field(None, alias='basePrices')
    bid_increment: Optional[int] = Field(None, alias='bidIncrement', ge=50, le=10_000)
    currency: Optional[str] = Field(None, max_length=10)
    enable_joker_card: Optional[bool] = Field(None, alias='enableJokerCard')
    enable_intelligence: Optional[bool] = Field(None, alias='enableIntelligence')
    custom_rules: Optional[str] = Field(None, alias='customRules', max_length=2000)

    def apply_to(self, settings: TournamentSettings) -> TournamentSettings:
        """Return a copy of settings with the provided fields replaced."""
        base_prices = dict(settings.base_prices)
        if self.base_prices is not None:
            if self.base_prices.APLUS is not None:
                base_prices['APLUS'] = self.base_prices.APLUS
            if self.base_prices.BASE is not None:
                base_prices['BASE'] = self.base_prices.BASE

        def pick(new, old):
            return old if new is None else new

        return TournamentSettings(
            team_size=pick(self.team_size, settings.team_size),
            base_prices=base_prices,
            bid_increment=pick(self.bid_increment, settings.bid_increment),
            currency=pick(self.currency, settings.currency),
            enable_joker_card=pick(self.enable_joker_card, settings.enable_joker_card),
            enable_intelligence=pick(self.enable_intelligence, settings.enable_intelligence),
            custom_rules=pick(self.custom_rules, settings.custom_rules),
        )


class ThemeInput(RequestModel):
    primary_color: str = Field(..., alias='primaryColor')
    secondary_color: str = Field(..., alias='secondaryColor')

    @field_validator('primary_color', 'secondary_color')
    @classmethod
    def check_colors(cls, value: str) -> str:
        return _check_color(value)

    def to_dict(self) -> Dict[str, str]:
        return {'primaryColor': self.primary_color, 'secondaryColor': self.secondary_color}


# ========== Tournament Requests ==========

class CreateTournamentRequest(RequestModel):
    """Body of POST /api/tournaments."""
    slug: str = Field(..., min_length=3, max_length=50)
    name: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    admin_pin: str = Field(..., alias='adminPin', min_length=config.MIN_PIN_LENGTH, max_length=config.MAX_PIN_LENGTH)
    settings: Optional[SettingsInput] = None
    sport: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=100)
    start_date: Optional[int] = Field(None, alias='startDate')
    end_date: Optional[int] = Field(None, alias='endDate')
    logo: Optional[str] = None
    theme: Optional[ThemeInput] = None

    @field_validator('logo')
    @classmethod
    def check_logo(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)


class UpdateTournamentRequest(RequestModel):
    """Body of PUT /api/tournaments/{id}; every field optional."""
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    settings: Optional[SettingsUpdate] = None
    sport: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=100)
    start_date: Optional[int] = Field(None, alias='startDate')
    end_date: Optional[int] = Field(None, alias='endDate')
    logo: Optional[str] = None
    theme: Optional[ThemeInput] = None

    @field_validator('logo')
    @classmethod
    def check_logo(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)


class TournamentPatchRequest(RequestModel):
    """Body of PATCH /api/tournaments/{id}."""
    action: Literal['publish', 'unpublish', 'getSessionToken', 'transition']
    status: Optional[Literal['draft', 'lobby', 'active', 'completed', 'archived']] = None


class DeleteTournamentRequest(RequestModel):
    confirm_delete: bool = Field(False, alias='confirmDelete')


# ========== Sheets ==========

class TeamInput(RequestModel):
    id: str
    name: str = Field(..., min_length=2, max_length=50)
    budget: int = Field(..., ge=0, le=10_000_000)
    color: str
    captain_id: Optional[str] = Field(None, alias='captainId')
    vice_captain_id: Optional[str] = Field(None, alias='viceCaptainId')
    logo: Optional[str] = None

    @field_validator('id')
    @classmethod
    def check_id(cls, value: str) -> str:
        return _check_id(value, 'Team')

    @field_validator('color')
    @classmethod
    def check_color(cls, value: str) -> str:
        return _check_color(value)

    @field_validator('logo')
    @classmethod
    def check_logo(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)

    def to_team(self) -> Team:
        return Team(
            id=self.id,
            name=self.name,
            budget=self.budget,
            color=self.color,
            captain_id=self.captain_id,
            vice_captain_id=self.vice_captain_id,
            logo=self.logo,
        )


class PlayerInput(RequestModel):
    id: str
    name: str = Field(..., min_length=2, max_length=100)
    role: str
    category: str
    club: Optional[str] = Field(None, max_length=50)
    availability: str = 'full'
    image: Optional[str] = None
    profile_url: Optional[str] = Field(None, alias='profileUrl')

    @field_validator('id')
    @classmethod
    def check_id(cls, value: str) -> str:
        return _check_id(value, 'Player')

    @field_validator('role')
    @classmethod
    def check_role(cls, value: str) -> str:
        return _check_choice(value, config.PLAYER_ROLES)

    @field_validator('category')
    @classmethod
    def check_category(cls, value: str) -> str:
        return _check_choice(value, config.PLAYER_CATEGORIES)

    @field_validator('availability')
    @classmethod
    def check_availability(cls, value: str) -> str:
        return _check_choice(value, config.AVAILABILITY_OPTIONS)

    @field_validator('image', 'profile_url')
    @classmethod
    def check_urls(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)

    def to_player(self) -> Player:
        return Player(
            id=self.id,
            name=self.name,
            role=self.role,
            category=self.category,
            availability=self.availability,
            club=self.club,
            image=self.image,
            profile_url=self.profile_url,
        )


class TeamProfileInput(RequestModel):
    logo: Optional[str] = None

    @field_validator('logo')
    @classmethod
    def check_logo(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)


class PlayerProfileInput(RequestModel):
    image: Optional[str] = None
    profile_url: Optional[str] = Field(None, alias='profileUrl')

    @field_validator('image', 'profile_url')
    @classmethod
    def check_urls(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)


class TeamsUpdateRequest(RequestModel):
    """Body of PUT /api/{id}/teams: the whole team sheet."""
    teams: List[TeamInput]
    profiles: Optional[Dict[str, TeamProfileInput]] = None


class PlayersUpdateRequest(RequestModel):
    """Body of PUT /api/{id}/players: the whole player sheet."""
    players: List[PlayerInput]
    profiles: Optional[Dict[str, PlayerProfileInput]] = None


# ========== Responses ==========

class HealthResponse(BaseModel):
    status: Literal['healthy', 'degraded', 'unhealthy']
    timestamp: int
    version: str
    checks: Dict[str, Dict[str, Any]]
    uptime: int = Field(..., description="Seconds since process start")


class TournamentListResponse(BaseModel):
    tournaments: List[Dict[str, Any]]
    count: int


def serialize_tournament(tournament, lifecycle=None) -> dict:
    """Public tournament payload (no PIN hash)."""
    data = tournament.to_public_dict()
    if lifecycle is not None:
        data['lifecycle'] = lifecycle.to_dict()
    return data
