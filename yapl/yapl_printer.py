"""
A pretty-printer for YAPL values.

Values are rendered in the YAML surface syntax YAPL programs are written in,
so results and offending fragments read the way the source did.
"""
import collections.abc
import math


class Printer:
    """Formats Python values as YAPL/YAML source strings."""

    def __init__(self, indent_width=2, line_width=72):
        self._indent_char = " " * indent_width
        self._line_width = line_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, str): return self._pformat_str
        if isinstance(obj, collections.abc.Mapping): return self._pformat_dict
        if isinstance(obj, (list, tuple)): return self._pformat_list
        # Default to Python's repr for host objects
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            float: self._pformat_float,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            list: self._pformat_list,
            tuple: self._pformat_list,
            dict: self._pformat_dict,
        }

    def _pformat_primitive(self, obj, level):
        return str(obj)

    def _pformat_float(self, obj, level):
        if math.isnan(obj):
            return '.nan'
        if math.isinf(obj):
            return '.inf' if obj > 0 else '-.inf'
        return repr(obj)

    def _pformat_str(self, obj, level):
        # YAML single-quoted style: the only escape is a doubled quote
        return "'" + obj.replace("'", "''") + "'"

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj, level):
        return 'null'

    def _pformat_list(self, obj, level):
        if not obj:
            return "[]"
        items = [self.pformat(item, level + 1) for item in obj]
        flow = "[" + ", ".join(items) + "]"
        if self._fits(flow, level):
            return flow
        return self._pformat_block([("- ", item) for item in obj], level)

    def _pformat_dict(self, obj, level):
        if not obj:
            return "{}"
        pairs = [(self._pformat_key(k), v) for k, v in obj.items()]
        flow = "{" + ", ".join(f"{k}: {self.pformat(v, level + 1)}" for k, v in pairs) + "}"
        if self._fits(flow, level):
            return flow
        return self._pformat_block([(f"{k}: ", v) for k, v in pairs], level)

    def _pformat_key(self, key):
        if isinstance(key, str) and key and (key.replace('_', '').replace('-', '').isalnum()):
            return key
        return self.pformat(key)

    def _pformat_block(self, entries, level):
        """Block style: one entry per line, nested blocks indented one level deeper."""
        outer_indent = self._indent_char * level
        lines = []
        for prefix, value in entries:
            rendered = self.pformat(value, level + 1)
            if '\n' in rendered:
                # Nested block goes on its own lines under the key or dash
                lines.append(f"{outer_indent}{prefix.rstrip()}")
                lines.append(rendered)
            else:
                lines.append(f"{outer_indent}{prefix}{rendered}")
        return "\n".join(lines)

    def _fits(self, text, level):
        return '\n' not in text and len(self._indent_char * level) + len(text) <= self._line_width
