"""单遍字节扫描器（field scanner）。

只做两件事：
- `find_key(name)`：在当前层级找到名为 name 的 key，沿途跳过不匹配 key 的整段值；
- `find_pair(key, value)`：在一串并列对象里找到 `key == value` 的那个对象，
  不匹配的对象整体跳过。

它不是通用 JSON 解析器：假定响应结构可信，只在结构异常时抛 `GrammarError`，
输入提前结束时抛 `UnexpectedEndOfInput`（前者的子类），以区分“格式错误”和“被截断”。

典型用法（账户余额）::

    scanner = FieldScanner(payload)
    scanner.find_key("balances")
    scanner.enter_value()
    scanner.find_pair("asset", "BTC")
    scanner.find_key("free")
    free = float(scanner.read_value())
"""

from __future__ import annotations

from enum import Enum

_WHITESPACE = b" \t\r\n"
_SCALAR_END = b",}]" + _WHITESPACE


class GrammarError(Exception):
    """响应内容与预期结构不符。"""

    def __init__(self, message: str, offset: int | None = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (offset {offset})"
        super().__init__(message)


class UnexpectedEndOfInput(GrammarError):
    """扫描尚未完成时输入已经结束。"""


class ValueKind(Enum):
    OBJECT = "object"
    ARRAY = "array"
    SCALAR = "scalar"


def _is_key_char(b: int) -> bool:
    return chr(b).isalnum() or b == ord("_")


class FieldScanner:
    """带读游标的只读字节缓冲区。"""

    def __init__(self, buffer: bytes):
        self._buf = bytes(buffer)
        self.pos = 0

    # ---- 基础读写 ----

    def _peek(self) -> int | None:
        if self.pos >= len(self._buf):
            return None
        return self._buf[self.pos]

    def _next(self, context: str) -> int:
        b = self._peek()
        if b is None:
            raise UnexpectedEndOfInput(f"unexpected end of input while {context}", self.pos)
        self.pos += 1
        return b

    def _expect(self, char: bytes, context: str) -> None:
        b = self._next(context)
        if b != char[0]:
            raise GrammarError(
                f"expected {char.decode()!r} {context}, found {chr(b)!r}", self.pos - 1
            )

    def at_end(self) -> bool:
        return self.pos >= len(self._buf)

    def skip_whitespace(self) -> None:
        while self.pos < len(self._buf) and self._buf[self.pos] in _WHITESPACE:
            self.pos += 1

    # ---- 跳过值 ----

    def _skip_string(self) -> None:
        # 游标位于开引号之后
        while True:
            b = self._next("skipping a string")
            if b == ord("\\"):
                self._next("skipping an escape sequence")
            elif b == ord('"'):
                return

    def _skip_balanced(self, open_char: int, close_char: int, what: str) -> None:
        depth = 1
        while depth:
            b = self._next(f"skipping an {what}")
            if b == ord('"'):
                self._skip_string()
            elif b == open_char:
                depth += 1
            elif b == close_char:
                depth -= 1

    def skip_value(self, kind: ValueKind) -> None:
        """跳过一个值。

        OBJECT / ARRAY：游标位于开括号之后，消费到与之配对的闭括号（含）。
        SCALAR：消费到下一个逗号（含）；遇到 `}` / `]` 或输入结束则停在其前。
        """
        if kind is ValueKind.OBJECT:
            self._skip_balanced(ord("{"), ord("}"), "object")
        elif kind is ValueKind.ARRAY:
            self._skip_balanced(ord("["), ord("]"), "array")
        else:
            while not self.at_end():
                b = self._buf[self.pos]
                if b == ord('"'):
                    self.pos += 1
                    self._skip_string()
                    continue
                if b in b"}]":
                    return
                self.pos += 1
                if b == ord(","):
                    return

    def skip_field_value(self) -> None:
        """跳过刚读出 key 对应的值（含冒号），类型由首字符决定。"""
        self._consume_colon()
        b = self._next("reading a value")
        if b == ord("["):
            self.skip_value(ValueKind.ARRAY)
        elif b == ord("{"):
            self.skip_value(ValueKind.OBJECT)
        else:
            self.pos -= 1
            self.skip_value(ValueKind.SCALAR)

    # ---- key / value ----

    def next_key(self) -> bytes | None:
        """前进到下一个引号并读出 key；没有更多引号时返回 None。

        返回后游标位于 key 的闭引号之后（冒号之前）。
        """
        quote = self._buf.find(b'"', self.pos)
        if quote < 0:
            self.pos = len(self._buf)
            return None
        self.pos = quote + 1
        start = self.pos
        first = self._next("reading a key")
        if not _is_key_char(first):
            raise GrammarError(f"unexpected character {chr(first)!r} at start of key", self.pos - 1)
        while True:
            b = self._next("reading a key")
            if b == ord('"'):
                return self._buf[start : self.pos - 1]
            if not _is_key_char(b):
                raise GrammarError(f"unexpected character {chr(b)!r} in key", self.pos - 1)

    def _consume_colon(self) -> None:
        self.skip_whitespace()
        self._expect(b":", "after key")
        self.skip_whitespace()

    def find_key(self, name: str) -> None:
        """在当前层级定位 key；成功后游标停在该 key 之后。"""
        target = name.encode()
        while True:
            key = self.next_key()
            if key is None:
                raise UnexpectedEndOfInput(f"key {name!r} not found", self.pos)
            if key == target:
                return
            self.skip_field_value()

    def read_value(self) -> bytes:
        """读取刚匹配 key 的标量值：消费冒号；字符串去掉引号后原样返回。"""
        self._consume_colon()
        b = self._next("reading a value")
        if b == ord('"'):
            start = self.pos
            self._skip_string()
            return self._buf[start : self.pos - 1].replace(b'\\"', b'"')
        if b in b"[{":
            raise GrammarError(f"expected a scalar value, found {chr(b)!r}", self.pos - 1)
        start = self.pos - 1
        while not self.at_end() and self._buf[self.pos] not in _SCALAR_END:
            self.pos += 1
        return self._buf[start : self.pos]

    def enter_value(self) -> ValueKind:
        """消费冒号与容器的开括号，游标进入刚匹配 key 的对象/数组内部。"""
        self._consume_colon()
        b = self._next("entering a value")
        if b == ord("["):
            return ValueKind.ARRAY
        if b == ord("{"):
            return ValueKind.OBJECT
        raise GrammarError(f"expected an object or array, found {chr(b)!r}", self.pos - 1)

    def find_pair(self, key: str, value: str) -> None:
        """在并列对象中找到 `key == value` 的对象，游标停在该值之后。

        其它 key 的值原样跳过；目标 key 的值不匹配时跳过该对象剩余部分。
        """
        target_key = key.encode()
        target_value = value.encode()
        while True:
            found = self.next_key()
            if found is None:
                raise UnexpectedEndOfInput(f"pair {key}={value!r} not found", self.pos)
            if found != target_key:
                self.skip_field_value()
                continue
            if self.read_value() == target_value:
                return
            self.skip_value(ValueKind.OBJECT)


def parse_error_document(payload: bytes) -> tuple[int, str]:
    """解析交易所错误文档 `{"code":-1120,"msg":"Invalid interval."}`（字段顺序无关）。"""
    scanner = FieldScanner(payload)
    code: int | None = None
    msg: str | None = None
    while code is None or msg is None:
        key = scanner.next_key()
        if key is None:
            break
        if key == b"code":
            raw = scanner.read_value()
            try:
                code = int(raw)
            except ValueError as exc:
                raise GrammarError(f"non-integer error code {raw!r}", scanner.pos) from exc
        elif key == b"msg":
            msg = scanner.read_value().decode("utf-8", errors="replace")
        else:
            scanner.skip_field_value()
    if code is None or msg is None:
        raise UnexpectedEndOfInput("error document is missing `code` or `msg`", scanner.pos)
    return code, msg
