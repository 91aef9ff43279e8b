"""Numpad reader using USB HID

Reads an 8-byte boot keyboard report from a USB numpad and emits KeyEvents.

Report layout:
  byte 0    modifier bits (ctrl/shift/alt/meta, left then right)
  byte 1    reserved
  byte 2-7  up to six pressed key codes, 0x00 when empty

A report of all zeros means no key is pressed.
"""
import logging
import threading

from core.keycodes import (
    KEY_MOD_LALT, KEY_MOD_LCTRL, KEY_MOD_LMETA, KEY_MOD_LSHIFT,
    KEY_MOD_RALT, KEY_MOD_RCTRL, KEY_MOD_RMETA, KEY_MOD_RSHIFT,
)
from core.reader import DeviceReader
from core.state import KeyEvent, Modifiers

LOG = logging.getLogger("cncpad.numpad")

try:
    import hid
except ImportError:
    hid = None
    LOG.warning("hidapi not installed; NumpadReader cannot open a device")

REPORT_SIZE = 8
READ_TIMEOUT_MS = 100
REOPEN_INTERVAL_S = 2.0


def decode_report(data):
    if not data or len(data) < 3:
        return None
    bits = data[0]
    mods = Modifiers(
        l_control=bool(bits & KEY_MOD_LCTRL),
        l_shift=bool(bits & KEY_MOD_LSHIFT),
        l_alt=bool(bits & KEY_MOD_LALT),
        l_meta=bool(bits & KEY_MOD_LMETA),
        r_control=bool(bits & KEY_MOD_RCTRL),
        r_shift=bool(bits & KEY_MOD_RSHIFT),
        r_alt=bool(bits & KEY_MOD_RALT),
        r_meta=bool(bits & KEY_MOD_RMETA),
    )
    return KeyEvent(key=int(data[2]), modifiers=mods)


def list_devices():
    if hid is None:
        LOG.warning("hidapi not available; cannot list HID devices")
        return []
    return hid.enumerate()


def find_numpad(vendor_id, product_id, interface=0):
    if not vendor_id or not product_id:
        LOG.error("missing vendor or product id (VID:PID %s:%s)", vendor_id, product_id)
        return None
    LOG.debug("looking for HID device with VID:PID %04x:%04x", vendor_id, product_id)
    for info in list_devices():
        if info.get("vendor_id") != vendor_id or info.get("product_id") != product_id:
            continue
        # some platforms report -1 when the interface number is unknown
        if interface is not None and info.get("interface_number", -1) not in (interface, -1):
            continue
        LOG.info("found HID device at %s", info.get("path"))
        return info
    LOG.debug("no HID device with VID:PID %04x:%04x", vendor_id, product_id)
    return None


class NumpadReader(DeviceReader):
    def __init__(self, vendor_id=None, product_id=None, logger=None):
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.log = logger or LOG
        self._subs = {name: [] for name in self.EVENTS}
        self._t = None
        self._stop = threading.Event()
        self._device = None
        self._attached = False
        self._missing_logged = False

    def subscribe(self, event, callback):
        if event not in self._subs:
            self.log.error("NumpadReader.subscribe unknown event %s", event)
            return
        self._subs[event].append(callback)
        # a late "attach" subscriber still learns that the pad is present
        if event == "attach" and self._attached:
            callback()

    def is_attached(self) -> bool:
        return self._attached

    def start(self):
        self._stop.clear()
        self._t = threading.Thread(target=self._loop, name="NumpadReader", daemon=True)
        self._t.start()

    def stop(self):
        self._stop.set()
        if self._t:
            self._t.join(timeout=1.0)
        self._close()

    def _emit(self, event, *args):
        for cb in list(self._subs[event]):
            try:
                cb(*args)
            except Exception:
                self.log.exception("subscriber callback failed")

    def _set_attached(self, attached: bool):
        if attached == self._attached:
            return
        self._attached = attached
        self._emit("attach" if attached else "remove")

    def _open(self):
        if hid is None or not self.vendor_id or not self.product_id:
            if not self._missing_logged:
                self.log.warning("hidapi not installed or no VID:PID configured; NumpadReader disabled")
                self._missing_logged = True
            return None
        info = find_numpad(self.vendor_id, self.product_id)
        if info is None:
            return None
        try:
            device = hid.device()
            device.open_path(info["path"])
        except OSError as e:
            self.log.warning("could not open numpad at %s: %s", info.get("path"), e)
            return None
        self.log.info("opened numpad %s %s", device.get_manufacturer_string() or "", device.get_product_string() or "")
        return device

    def _close(self):
        if self._device:
            try:
                self._device.close()
            except Exception:
                pass
        self._device = None

    def _loop(self):
        while not self._stop.is_set():
            if self._device is None:
                self._device = self._open()
                if self._device is None:
                    self._stop.wait(REOPEN_INTERVAL_S)
                    continue
                self._set_attached(True)
            try:
                data = self._device.read(REPORT_SIZE, READ_TIMEOUT_MS)
            except (OSError, ValueError) as e:
                self.log.error("numpad unplugged? %s", e)
                self._close()
                self._set_attached(False)
                continue
            if data:
                event = decode_report(data)
                if event is not None:
                    self.log.debug("key 0x%02x", event.key)
                    self._emit("use", event)
