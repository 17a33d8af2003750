"""Command catalog for the remote agents.

A :class:`Command` is a plain value built per invocation: a kind from
:data:`COMMANDS` plus whichever parameter that kind needs (a URL, free
text, or a file attachment).  The :class:`CommandSpec` table is the single
place that knows endpoints, parameter names and selection policy.
"""

from __future__ import annotations

from dataclasses import dataclass

from wallchange.errors import InvalidInputError

# Reserved target value; the server fans it out to every connected agent.
WILDCARD = "*"

# Payload requirements
NONE = "none"
URL = "url"
TEXT = "text"


@dataclass(frozen=True)
class CommandSpec:
    """Static description of one command kind."""
    kind: str
    endpoint: str
    label: str
    payload: str = NONE
    param: str = ""
    upload_type: str | None = None
    uploadable: bool = False
    clears_selection: bool = False
    privileged: bool = False


@dataclass(frozen=True)
class Attachment:
    """A file sent as a multipart upload instead of a URL."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class Command:
    kind: str
    url: str | None = None
    text: str | None = None
    attachment: Attachment | None = None

    @classmethod
    def build(
        cls,
        kind: str,
        *,
        url: str | None = None,
        text: str | None = None,
        attachment: Attachment | None = None,
    ) -> Command:
        get_spec(kind)
        return cls(kind=kind, url=url, text=text, attachment=attachment)

    @property
    def spec(self) -> CommandSpec:
        return get_spec(self.kind)

    def validate(self) -> None:
        """Raise :class:`InvalidInputError` if the parameters don't fit the kind."""
        spec = self.spec
        if self.attachment is not None:
            if not spec.uploadable:
                raise InvalidInputError(f"{spec.label} does not accept a file")
            if not self.attachment.content:
                raise InvalidInputError(f"Empty file for {spec.label}")
            return
        if spec.payload == URL and not (self.url or "").strip():
            raise InvalidInputError(f"{spec.label} needs a URL")
        if spec.payload == TEXT and not (self.text or "").strip():
            raise InvalidInputError(f"{spec.label} needs some text")

    def param_value(self) -> str | None:
        spec = self.spec
        if spec.payload == URL:
            return self.url
        if spec.payload == TEXT:
            return self.text
        return None


def _spec(kind: str, endpoint: str, label: str, **kwargs) -> tuple[str, CommandSpec]:
    return kind, CommandSpec(kind=kind, endpoint=endpoint, label=label, **kwargs)


COMMANDS: dict[str, CommandSpec] = dict([
    # Content: a broadcast closes the selection
    _spec("wallpaper-set", "/api/send", "Wallpaper", payload=URL, param="url",
          uploadable=True, clears_selection=True),
    _spec("marquee-set", "/api/marquee", "Marquee", payload=URL, param="url",
          uploadable=True, upload_type="marquee", clears_selection=True),
    _spec("particles-set", "/api/particles", "Particles", payload=URL, param="url",
          uploadable=True, upload_type="particles", clears_selection=True),
    _spec("reverse", "/api/reverse", "Reverse", clears_selection=True),
    _spec("show-desktop", "/api/showdesktop", "Show desktop", clears_selection=True),
    _spec("lock", "/api/lock", "Lock", clears_selection=True),
    _spec("uninstall", "/api/uninstall", "Uninstall", clears_selection=True,
          privileged=True),
    _spec("trigger-update", "/api/update", "Update", clears_selection=True),
    # Effects are commonly repeated, selection stays open
    _spec("clones", "/api/clones", "Clones"),
    _spec("drunk", "/api/drunk", "Drunk mode"),
    _spec("confetti", "/api/confetti", "Confetti"),
    _spec("spotlight", "/api/spotlight", "Spotlight"),
    _spec("text-screen", "/api/textscreen", "Text screen", payload=TEXT, param="text"),
    _spec("wave-screen", "/api/wavescreen", "Wave screen"),
    _spec("dvd-bounce", "/api/dvdbounce", "DVD bounce"),
    _spec("fireworks", "/api/fireworks", "Fireworks"),
    _spec("screenshot-request", "/api/screenshot", "Screenshot"),
    _spec("key-combo", "/api/key", "Key combo", payload=TEXT, param="combo"),
    _spec("fake-terminal", "/api/faketerminal", "Fake terminal"),
])


def get_spec(kind: str) -> CommandSpec:
    try:
        return COMMANDS[kind]
    except KeyError:
        raise InvalidInputError(f"Unknown command: {kind}") from None
