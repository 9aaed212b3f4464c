"""User-visible notices and the single error slot."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Notice:
    """A non-blocking message for the presentation layer."""

    title: str
    message: str


@dataclass
class NoticeBoard:
    """Holds the current error message and pending notices."""

    error: str | None = None
    notices: list[Notice] = field(default_factory=list)

    def report_error(self, message: str) -> None:
        """Replace the error slot with a new message."""
        self.error = message

    def clear_error(self) -> None:
        """Empty the error slot."""
        self.error = None

    def notify(self, title: str, message: str) -> None:
        """Queue a notice for the presentation layer."""
        self.notices.append(Notice(title=title, message=message))

    def drain(self) -> list[Notice]:
        """Return and clear pending notices."""
        pending, self.notices = self.notices, []
        return pending
