"""Action components: choice and confirm.

Action widgets report user interactions as ``ActionPayload`` objects to
every callback bound with ``on_action``. The host decides what to do
with them, typically formatting them into the next user message.
"""

from __future__ import annotations

import html
import logging
import uuid
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from livellm.dom import Element, NodeKind
from livellm.registry import ActionCallback, Skeleton
from livellm.schemas.protocol import ActionPayload

logger = logging.getLogger(__name__)


def _notify(listeners: list[ActionCallback], payload: ActionPayload) -> None:
    for callback in listeners:
        try:
            callback(payload)
        except Exception:
            logger.exception("Action listener failed for %s", payload.component)


# ── Choice ────────────────────────────────────────────────────────


class ChoiceOption(BaseModel):
    label: str
    value: Any = None
    description: str = ""

    @property
    def resolved_value(self) -> Any:
        return self.label if self.value is None else self.value


class ChoiceProps(BaseModel):
    question: str = ""
    options: list[ChoiceOption | str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("options", "choices", "items"),
    )

    def normalized(self) -> list[ChoiceOption]:
        return [
            ChoiceOption(label=opt) if isinstance(opt, str) else opt for opt in self.options
        ]


CHOICE_SKELETON = Skeleton(
    markup='<div class="livellm-skeleton" style="height:120px;border-radius:8px;"></div>',
    height="120px",
)


class Choice:
    props_model = ChoiceProps

    def __init__(self) -> None:
        self._listeners: list[ActionCallback] = []
        self._props: ChoiceProps | None = None
        self.component_id = uuid.uuid4().hex[:12]
        self.selected: ChoiceOption | None = None

    def default_props(self) -> dict[str, Any]:
        return {"question": "", "options": []}

    @property
    def options(self) -> list[ChoiceOption]:
        return self._props.normalized() if self._props else []

    def render(self, props: ChoiceProps) -> Element:
        self._props = props
        buttons = "".join(
            f'<button class="livellm-choice-option" data-index="{i}">'
            f"{html.escape(opt.label)}</button>"
            for i, opt in enumerate(props.normalized())
        )
        question = (
            f'<p class="livellm-choice-question">{html.escape(props.question)}</p>'
            if props.question
            else ""
        )
        return Element(
            tag="div",
            classes=["livellm-choice"],
            attrs={"data-component-id": self.component_id},
            inner_html=f'{question}<div class="livellm-choice-options">{buttons}</div>',
            kind=NodeKind.COMPONENT,
        )

    def on_action(self, callback: ActionCallback) -> None:
        self._listeners.append(callback)

    def select(self, index: int) -> ActionPayload:
        """Select the option at ``index`` and notify listeners.

        Raises:
            IndexError: If ``index`` is out of range.
        """
        option = self.options[index]
        self.selected = option
        payload = ActionPayload(
            component="choice",
            action="select",
            value=option.resolved_value,
            label=option.label,
            context=self._props.question if self._props and self._props.question else None,
            component_id=self.component_id,
        )
        _notify(self._listeners, payload)
        return payload


# ── Confirm ───────────────────────────────────────────────────────


class ConfirmProps(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = "Are you sure?"
    confirm_label: str = Field(default="Yes", alias="confirmLabel")
    cancel_label: str = Field(default="No", alias="cancelLabel")


CONFIRM_SKELETON = Skeleton(
    markup='<div class="livellm-skeleton" style="height:90px;border-radius:8px;"></div>',
    height="90px",
)


class Confirm:
    props_model = ConfirmProps

    def __init__(self) -> None:
        self._listeners: list[ActionCallback] = []
        self._props = ConfirmProps()
        self.component_id = uuid.uuid4().hex[:12]
        self.answered: bool | None = None

    def default_props(self) -> dict[str, Any]:
        return ConfirmProps().model_dump()

    def render(self, props: ConfirmProps) -> Element:
        self._props = props
        return Element(
            tag="div",
            classes=["livellm-confirm"],
            attrs={"data-component-id": self.component_id},
            inner_html=(
                f'<p class="livellm-confirm-text">{html.escape(props.text)}</p>'
                f'<button class="livellm-confirm-yes">{html.escape(props.confirm_label)}</button>'
                f'<button class="livellm-confirm-no">{html.escape(props.cancel_label)}</button>'
            ),
            kind=NodeKind.COMPONENT,
        )

    def on_action(self, callback: ActionCallback) -> None:
        self._listeners.append(callback)

    def respond(self, confirmed: bool) -> ActionPayload:
        """Answer the prompt and notify listeners."""
        self.answered = confirmed
        payload = ActionPayload(
            component="confirm",
            action="confirm" if confirmed else "cancel",
            value=confirmed,
            label=self._props.confirm_label if confirmed else self._props.cancel_label,
            context=self._props.text,
            component_id=self.component_id,
        )
        _notify(self._listeners, payload)
        return payload
