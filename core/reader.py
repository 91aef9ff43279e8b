"""Input device contract

A reader owns one physical input device and reports three events:

  attach   the device became available (no arguments)
  remove   the device went away (no arguments)
  use      a report arrived (one KeyEvent)

Callbacks run on the reader's own thread; consumers that keep state post
them to the dispatcher.
"""
import abc


class DeviceReader(abc.ABC):
    EVENTS = ("attach", "remove", "use")

    @abc.abstractmethod
    def start(self):
        """Begin watching for the device in the background."""

    @abc.abstractmethod
    def stop(self):
        """Stop watching and release the device."""

    @abc.abstractmethod
    def subscribe(self, event: str, callback):
        """Register `callback` for one of EVENTS."""

    @abc.abstractmethod
    def is_attached(self) -> bool:
        pass
