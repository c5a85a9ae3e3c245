"""
Pydantic models for the HTTP bodies and the WebSocket intent messages.
Shape validation happens here; game-rule validation stays in the engine.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from coalition.engine.actions import (
    ROLL_DICE,
    Action,
    acknowledge_results,
    cast_vote,
    contribute_to_crisis,
    mark_ready,
    propose_deal,
    respond_deal,
    select_ideology,
    select_option,
    send_chat_message,
    start_game,
)


# ===== HTTP =====

class CreateRoomRequest(BaseModel):
    room_id: str | None = None  # generated when omitted


class JoinRoomRequest(BaseModel):
    display_name: str


# ===== WebSocket intents =====

class SelectIdeologyMessage(BaseModel):
    type: Literal["select_ideology"]
    ideology: str


class StartGameMessage(BaseModel):
    type: Literal["start_game"]


class RollDiceMessage(BaseModel):
    type: Literal["roll_dice"]


class MarkReadyMessage(BaseModel):
    type: Literal["mark_ready"]


class SelectOptionMessage(BaseModel):
    type: Literal["select_option"]
    option_id: str


class ProposeDealMessage(BaseModel):
    type: Literal["propose_deal"]
    responder_id: str
    initiator_commitment: dict[str, Any]
    responder_commitment: dict[str, Any]
    scope: str = "this_vote"
    scope_value: int | None = None


class RespondDealMessage(BaseModel):
    type: Literal["respond_deal"]
    deal_id: str
    accept: bool


class CastVoteMessage(BaseModel):
    type: Literal["cast_vote"]
    choice: str
    influence_spent: int = 0


class ContributeToCrisisMessage(BaseModel):
    type: Literal["contribute_to_crisis"]
    amount: int


class AcknowledgeResultsMessage(BaseModel):
    type: Literal["acknowledge_results"]


class SendChatMessage(BaseModel):
    type: Literal["send_chat_message"]
    text: str


IntentMessage = Annotated[
    Union[
        SelectIdeologyMessage,
        StartGameMessage,
        RollDiceMessage,
        MarkReadyMessage,
        SelectOptionMessage,
        ProposeDealMessage,
        RespondDealMessage,
        CastVoteMessage,
        ContributeToCrisisMessage,
        AcknowledgeResultsMessage,
        SendChatMessage,
    ],
    Field(discriminator="type"),
]

intent_adapter = TypeAdapter(IntentMessage)


def parse_intent(data: Any):
    """Validate a raw WebSocket message. Raises pydantic.ValidationError."""
    return intent_adapter.validate_python(data)


def to_action(message, player_id: str) -> Action:
    """Build the engine action for a validated message. roll_dice is filled in by the session."""
    if isinstance(message, SelectIdeologyMessage):
        return select_ideology(player_id, message.ideology)
    if isinstance(message, StartGameMessage):
        return start_game(player_id)
    if isinstance(message, RollDiceMessage):
        return Action(type=ROLL_DICE, player_id=player_id)
    if isinstance(message, MarkReadyMessage):
        return mark_ready(player_id)
    if isinstance(message, SelectOptionMessage):
        return select_option(player_id, message.option_id)
    if isinstance(message, ProposeDealMessage):
        return propose_deal(
            player_id,
            message.responder_id,
            message.initiator_commitment,
            message.responder_commitment,
            scope=message.scope,
            scope_value=message.scope_value,
        )
    if isinstance(message, RespondDealMessage):
        return respond_deal(player_id, message.deal_id, message.accept)
    if isinstance(message, CastVoteMessage):
        return cast_vote(player_id, message.choice, message.influence_spent)
    if isinstance(message, ContributeToCrisisMessage):
        return contribute_to_crisis(player_id, message.amount)
    if isinstance(message, AcknowledgeResultsMessage):
        return acknowledge_results(player_id)
    if isinstance(message, SendChatMessage):
        return send_chat_message(player_id, message.text)
    raise TypeError(f"Unhandled message type: {type(message).__name__}")
