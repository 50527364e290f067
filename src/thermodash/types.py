from typing import Literal, TypedDict

type Transport = Literal["tcp", "websockets"]
type StatusState = Literal["connected", "disconnected", "error"]


class StatusJson(TypedDict):
    state: StatusState
    label: str
    message: str | None
    session: str


class DeviceJson(TypedDict):
    id: str
    temperature: float
    last_update: str
    last_update_display: str


class AnalysisJson(TypedDict):
    html: str


# Gemini generateContent request body

class PartJson(TypedDict):
    text: str


class ContentJson(TypedDict):
    role: Literal["user"]
    parts: list[PartJson]


class GenerateRequestJson(TypedDict):
    contents: list[ContentJson]
