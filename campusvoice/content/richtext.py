"""
Rich-text document model behind the post editor.

The document is an arena: every node lives in ``nodes`` keyed by an integer
id and refers to its parent and children by id. Undo snapshots are plain
copies of the arena, so there are no object cycles to untangle.

Block nodes: doc, paragraph, heading (level 2/3), bullet_list, ordered_list,
list_item, blockquote, horizontal_rule. Inline nodes: text (bold/italic
marks, optional link href) and image.

The cursor is a Selection inside one text block (paragraph, heading or
list_item). Offsets count characters; an inline image counts as one.

Every command returns True when it changed the document. Applied commands
push the previous state onto the undo stack, drop the redo stack and emit
the new sanitized HTML to subscribers.
"""

import copy
import functools
import html as html_lib
from dataclasses import dataclass, field
from typing import Callable, Optional

from bs4 import BeautifulSoup, NavigableString

from campusvoice.content.sanitizer import is_safe_url, sanitize
from campusvoice.errors import ValidationError

TEXTBLOCKS = frozenset({"paragraph", "heading", "list_item"})
LISTS = frozenset({"bullet_list", "ordered_list"})
MARKS = ("bold", "italic")
HEADING_LEVELS = (2, 3)
HISTORY_LIMIT = 100

LIST_KINDS = {
    "bullet": "bullet_list",
    "bullet_list": "bullet_list",
    "ordered": "ordered_list",
    "ordered_list": "ordered_list",
}

HEADING_TAGS = {"h1": 2, "h2": 2, "h3": 3, "h4": 3}
INLINE_TAGS = frozenset({"strong", "b", "em", "i", "s", "code", "a", "img", "br"})
BLOCK_TAGS = {
    "paragraph": "p",
    "bullet_list": "ul",
    "ordered_list": "ol",
    "list_item": "li",
    "blockquote": "blockquote",
}

# Stands in for an inline image in plain-text views of a block
OBJECT_CHAR = "\ufffc"
LINK_REL = "noopener noreferrer nofollow"


@dataclass
class Node:
    id: int
    kind: str
    parent: Optional[int] = None
    children: list = field(default_factory=list)
    text: str = ""
    marks: frozenset = frozenset()
    href: Optional[str] = None
    level: Optional[int] = None
    src: Optional[str] = None
    alt: str = ""

    @property
    def size(self) -> int:
        if self.kind == "text":
            return len(self.text)
        if self.kind == "image":
            return 1
        return 0

    def same_format(self, other: "Node") -> bool:
        return (
            self.kind == other.kind == "text"
            and self.marks == other.marks
            and self.href == other.href
        )


@dataclass
class Selection:
    block: int
    start: int
    end: int

    @property
    def empty(self) -> bool:
        return self.start == self.end


def command(method):
    """Run an editing command with undo bookkeeping and change emission."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        before = self._snapshot()
        try:
            applied = method(self, *args, **kwargs)
        except Exception:
            self._restore(before)
            raise
        if not applied:
            self._restore(before)
            return False
        self._undo.append(before)
        del self._undo[:-self.history_limit]
        self._redo.clear()
        self._emit()
        return True

    return wrapper


class RichTextModel:
    def __init__(self, history_limit: int = HISTORY_LIMIT):
        self.history_limit = history_limit
        self.nodes: dict[int, Node] = {}
        self._next_id = 1
        self.root = self._new("doc")
        first = self._append(self.root, "paragraph")
        self.selection = Selection(first, 0, 0)
        self._undo: list = []
        self._redo: list = []
        self._listeners: list[Callable[[str], None]] = []

    # =========================================================================
    # ARENA
    # =========================================================================

    def _new(self, kind: str, **values) -> int:
        node_id = self._next_id
        self._next_id += 1
        self.nodes[node_id] = Node(id=node_id, kind=kind, **values)
        return node_id

    def _insert(self, parent: int, index: int, child: int) -> None:
        self.nodes[parent].children.insert(index, child)
        self.nodes[child].parent = parent

    def _append(self, parent: int, kind: str, **values) -> int:
        node_id = self._new(kind, **values)
        self._insert(parent, len(self.nodes[parent].children), node_id)
        return node_id

    def _index(self, node_id: int) -> int:
        return self.nodes[self.nodes[node_id].parent].children.index(node_id)

    def _detach(self, node_id: int) -> int:
        index = self._index(node_id)
        node = self.nodes[node_id]
        self.nodes[node.parent].children.pop(index)
        node.parent = None
        return index

    def _discard(self, node_id: int) -> None:
        if self.nodes[node_id].parent is not None:
            self._detach(node_id)
        stack = [node_id]
        while stack:
            stack.extend(self.nodes.pop(stack.pop()).children)

    def _adopt(self, parent: int, children: list) -> None:
        self.nodes[parent].children = list(children)
        for child in children:
            self.nodes[child].parent = parent

    def _snapshot(self):
        return (
            copy.deepcopy(self.nodes),
            self.root,
            self._next_id,
            copy.copy(self.selection),
        )

    def _restore(self, state) -> None:
        self.nodes, self.root, self._next_id, self.selection = state

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def current_block(self) -> Node:
        return self.nodes[self.selection.block]

    def textblocks(self) -> list[int]:
        """Text block ids in document order."""
        found = []
        stack = [self.root]
        while stack:
            node = self.nodes[stack.pop()]
            if node.kind in TEXTBLOCKS:
                found.append(node.id)
            else:
                stack.extend(reversed(node.children))
        return found

    def block_length(self, block_id: int) -> int:
        return sum(self.nodes[child].size for child in self.nodes[block_id].children)

    def block_text(self, block_id: int) -> str:
        return "".join(
            node.text if node.kind == "text" else OBJECT_CHAR
            for node in (self.nodes[child] for child in self.nodes[block_id].children)
        )

    def text_content(self) -> str:
        return "\n".join(self.block_text(block) for block in self.textblocks())

    def _runs_in_range(self, block_id: int, start: int, end: int) -> list[Node]:
        runs = []
        pos = 0
        for child in self.nodes[block_id].children:
            node = self.nodes[child]
            if pos < end and pos + node.size > start:
                runs.append(node)
            pos += node.size
        return runs

    def is_active(self, name: str, level: Optional[int] = None) -> bool:
        """Report whether a mark or block type applies at the cursor."""
        block = self.current_block()
        if name in MARKS:
            sel = self.selection
            if sel.empty:
                runs = self._runs_in_range(block.id, max(sel.start - 1, 0), sel.start)
            else:
                runs = self._runs_in_range(block.id, sel.start, sel.end)
            texts = [run for run in runs if run.kind == "text"]
            return bool(texts) and all(name in run.marks for run in texts)
        if name == "heading":
            return block.kind == "heading" and (level is None or block.level == level)
        if name in LIST_KINDS:
            return block.kind == "list_item" and self.nodes[block.parent].kind == LIST_KINDS[name]
        if name == "blockquote":
            node = block
            while node.parent is not None:
                node = self.nodes[node.parent]
                if node.kind == "blockquote":
                    return True
            return False
        return block.kind == name

    def state(self) -> dict:
        block = self.current_block()
        return {
            "html": self.to_html(),
            "selection": {
                "block": self.selection.block,
                "start": self.selection.start,
                "end": self.selection.end,
            },
            "block_type": block.kind,
            "level": block.level,
            "marks": [mark for mark in MARKS if self.is_active(mark)],
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
        }

    # =========================================================================
    # SELECTION (not part of the undo history)
    # =========================================================================

    def select(self, block: Optional[int] = None, start: int = 0, end: Optional[int] = None) -> Selection:
        block = self.selection.block if block is None else block
        if block not in self.nodes or self.nodes[block].kind not in TEXTBLOCKS:
            raise ValidationError("Selection must be inside a text block")
        length = self.block_length(block)
        start = max(0, min(start, length))
        end = start if end is None else max(0, min(end, length))
        if end < start:
            start, end = end, start
        self.selection = Selection(block, start, end)
        return self.selection

    def select_text(self, needle: str) -> bool:
        """Select the first occurrence of needle in the document."""
        if not needle:
            return False
        for block in self.textblocks():
            index = self.block_text(block).find(needle)
            if index >= 0:
                self.select(block, index, index + len(needle))
                return True
        return False

    def move_to_end(self) -> Selection:
        block = self.textblocks()[-1]
        return self.select(block, self.block_length(block))

    # =========================================================================
    # CHANGE NOTIFICATION
    # =========================================================================

    def subscribe(self, listener: Callable[[str], None]) -> Callable[[], None]:
        """Call listener with the sanitized HTML after every applied change."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        html = self.to_html()
        for listener in list(self._listeners):
            listener(html)

    # =========================================================================
    # INLINE HELPERS
    # =========================================================================

    def _boundary(self, block_id: int, offset: int) -> int:
        """Make sure a child starts at offset; return that child's index."""
        block = self.nodes[block_id]
        pos = 0
        for index, child_id in enumerate(block.children):
            child = self.nodes[child_id]
            if pos == offset:
                return index
            if pos < offset < pos + child.size:
                cut = offset - pos
                tail = self._new("text", text=child.text[cut:], marks=child.marks, href=child.href)
                child.text = child.text[:cut]
                self._insert(block_id, index + 1, tail)
                return index + 1
            pos += child.size
        return len(block.children)

    def _cut(self, block_id: int, start: int, end: int) -> list[int]:
        first = self._boundary(block_id, start)
        last = self._boundary(block_id, end)
        return list(self.nodes[block_id].children[first:last])

    def _normalize(self, block_id: int) -> None:
        kept: list[int] = []
        for child_id in list(self.nodes[block_id].children):
            child = self.nodes[child_id]
            if child.kind == "text" and not child.text:
                self._discard(child_id)
            elif kept and self.nodes[kept[-1]].same_format(child):
                self.nodes[kept[-1]].text += child.text
                self._discard(child_id)
            else:
                kept.append(child_id)

    def _delete_selection(self) -> bool:
        sel = self.selection
        if sel.empty:
            return False
        for node_id in self._cut(sel.block, sel.start, sel.end):
            self._discard(node_id)
        self._normalize(sel.block)
        self.selection = Selection(sel.block, sel.start, sel.start)
        return True

    def _insert_run(self, text: str, marks=None, href: Optional[str] = None) -> None:
        sel = self.selection
        index = self._boundary(sel.block, sel.start)
        if marks is None:
            marks = frozenset()
            if index:
                before = self.nodes[self.nodes[sel.block].children[index - 1]]
                if before.kind == "text":
                    marks = before.marks
        node = self._new("text", text=text, marks=frozenset(marks), href=href)
        self._insert(sel.block, index, node)
        self._normalize(sel.block)
        offset = sel.start + len(text)
        self.selection = Selection(sel.block, offset, offset)

    def _split_at_cursor(self) -> int:
        self._delete_selection()
        sel = self.selection
        block = self.nodes[sel.block]
        index = self._boundary(sel.block, sel.start)
        tail = block.children[index:]
        del block.children[index:]

        if block.kind == "heading" and tail:
            new_block = self._new("heading", level=block.level)
        else:
            new_block = self._new("list_item" if block.kind == "list_item" else "paragraph")
        self._adopt(new_block, tail)
        self._insert(block.parent, self._index(block.id) + 1, new_block)
        self.selection = Selection(new_block, 0, 0)
        return new_block

    def _lift(self, node_id: int) -> None:
        """Move node out of its container, splitting the container around it."""
        node = self.nodes[node_id]
        container = self.nodes[node.parent]
        if container.kind == "doc":
            return
        index = self._detach(node_id)
        tail = container.children[index:]
        del container.children[index:]

        position = self._index(container.id) + 1
        if tail:
            rest = self._new(container.kind)
            self._adopt(rest, tail)
            self._insert(container.parent, position, rest)
        self._insert(container.parent, position, node_id)

        if node.kind == "list_item" and container.kind in LISTS:
            node.kind = "paragraph"
        if not container.children:
            self._discard(container.id)

    # =========================================================================
    # COMMANDS
    # =========================================================================

    @command
    def insert_text(self, text: str, marks=None) -> bool:
        if not text:
            return False
        if marks is not None and not set(marks) <= set(MARKS):
            raise ValidationError("Unknown text mark")
        self._delete_selection()
        for number, line in enumerate(text.replace("\r\n", "\n").split("\n")):
            if number:
                self._split_at_cursor()
            if line:
                self._insert_run(line, marks)
        return True

    @command
    def delete_selection(self) -> bool:
        return self._delete_selection()

    @command
    def split_block(self) -> bool:
        self._split_at_cursor()
        return True

    @command
    def toggle_mark(self, mark: str) -> bool:
        if mark not in MARKS:
            raise ValidationError(f"Unknown text mark: {mark}")
        sel = self.selection
        if sel.empty:
            return False
        runs = [self.nodes[node] for node in self._cut(sel.block, sel.start, sel.end)]
        texts = [run for run in runs if run.kind == "text"]
        if not texts:
            return False
        if all(mark in run.marks for run in texts):
            for run in texts:
                run.marks = run.marks - {mark}
        else:
            for run in texts:
                run.marks = run.marks | {mark}
        self._normalize(sel.block)
        return True

    @command
    def set_block_type(self, kind: str, level: Optional[int] = None) -> bool:
        """Turn the block at the cursor into a paragraph or heading.

        Asking for the heading level the block already has turns it back
        into a paragraph. Works on an empty selection too: the whole
        containing block changes.
        """
        if kind == "heading":
            if level not in HEADING_LEVELS:
                raise ValidationError("Heading level must be 2 or 3")
        elif kind == "paragraph":
            level = None
        else:
            raise ValidationError(f"Unknown block type: {kind}")

        block = self.current_block()
        if kind == "heading" and block.kind == "heading" and block.level == level:
            kind, level = "paragraph", None
        elif block.kind == kind and block.level == level:
            return False

        if block.kind == "list_item":
            self._lift(block.id)
        block.kind = kind
        block.level = level
        return True

    @command
    def toggle_list(self, kind: str) -> bool:
        list_kind = LIST_KINDS.get(kind)
        if list_kind is None:
            raise ValidationError(f"Unknown list type: {kind}")

        block = self.current_block()
        if block.kind == "list_item":
            container = self.nodes[block.parent]
            if container.kind == list_kind:
                self._lift(block.id)
            else:
                container.kind = list_kind
            return True

        parent = self.nodes[block.parent]
        index = self._detach(block.id)
        block.kind, block.level = "list_item", None
        previous = self.nodes[parent.children[index - 1]] if index else None
        if previous is not None and previous.kind == list_kind:
            self._insert(previous.id, len(previous.children), block.id)
        else:
            wrapper = self._new(list_kind)
            self._insert(parent.id, index, wrapper)
            self._insert(wrapper, 0, block.id)
        return True

    @command
    def toggle_blockquote(self) -> bool:
        block = self.current_block()
        target = self.nodes[block.parent] if block.kind == "list_item" else block
        parent = self.nodes[target.parent]
        if parent.kind == "blockquote":
            self._lift(target.id)
            return True
        index = self._detach(target.id)
        quote = self._new("blockquote")
        self._insert(parent.id, index, quote)
        self._insert(quote, 0, target.id)
        return True

    @command
    def insert_link(self, href: str, text: Optional[str] = None) -> bool:
        """Link the selected text, or insert text as a new link at the cursor."""
        href = (href or "").strip()
        if not is_safe_url(href):
            raise ValidationError("Enter a valid link URL")

        sel = self.selection
        if sel.empty:
            if not text:
                return False
            self._insert_run(text, marks=(), href=href)
            self.selection = Selection(sel.block, sel.start, sel.start + len(text))
            return True

        texts = [
            self.nodes[node] for node in self._cut(sel.block, sel.start, sel.end)
            if self.nodes[node].kind == "text"
        ]
        if not texts:
            return False
        for run in texts:
            run.href = href
        self._normalize(sel.block)
        return True

    @command
    def remove_link(self) -> bool:
        sel = self.selection
        if sel.empty:
            return False
        linked = [
            self.nodes[node] for node in self._cut(sel.block, sel.start, sel.end)
            if self.nodes[node].href
        ]
        for run in linked:
            run.href = None
        self._normalize(sel.block)
        return bool(linked)

    @command
    def insert_image(self, src: str, alt: str = "") -> bool:
        """Insert an inline image; src comes from the image ingestor or a URL."""
        src = (src or "").strip()
        if not is_safe_url(src, image=True):
            raise ValidationError("Image source is not allowed")
        self._delete_selection()
        sel = self.selection
        index = self._boundary(sel.block, sel.start)
        self._insert(sel.block, index, self._new("image", src=src, alt=alt or ""))
        self.selection = Selection(sel.block, sel.start + 1, sel.start + 1)
        return True

    @command
    def insert_horizontal_rule(self) -> bool:
        self._delete_selection()
        sel = self.selection
        block = self.current_block()
        length = self.block_length(block.id)

        if block.parent == self.root and 0 < sel.start < length:
            second = self._split_at_cursor()
            self._insert(self.root, self._index(second), self._new("horizontal_rule"))
            return True
        if block.parent == self.root and sel.start == 0 and length:
            self._insert(self.root, self._index(block.id), self._new("horizontal_rule"))
            return True

        top = block.id
        while self.nodes[top].parent != self.root:
            top = self.nodes[top].parent
        position = self._index(top) + 1
        self._insert(self.root, position, self._new("horizontal_rule"))
        paragraph = self._new("paragraph")
        self._insert(self.root, position + 1, paragraph)
        self.selection = Selection(paragraph, 0, 0)
        return True

    @command
    def replace_content(self, html: str) -> bool:
        other = RichTextModel.from_html(html)
        self.nodes, self.root, self._next_id = other.nodes, other.root, other._next_id
        self.selection = other.selection
        return True

    def undo(self) -> bool:
        if not self._undo:
            return False
        self._redo.append(self._snapshot())
        self._restore(self._undo.pop())
        self._emit()
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        self._undo.append(self._snapshot())
        self._restore(self._redo.pop())
        self._emit()
        return True

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_html(self) -> str:
        return sanitize(self._render(self.root))

    def _render(self, node_id: int) -> str:
        node = self.nodes[node_id]
        inner = "".join(self._render(child) for child in node.children)

        if node.kind == "doc":
            return inner
        if node.kind == "heading":
            return f"<h{node.level}>{inner}</h{node.level}>"
        if node.kind == "horizontal_rule":
            return "<hr>"
        if node.kind == "image":
            src = html_lib.escape(node.src or "")
            alt = html_lib.escape(node.alt or "")
            return f'<img src="{src}" alt="{alt}">'
        if node.kind == "text":
            out = html_lib.escape(node.text, quote=False)
            if "italic" in node.marks:
                out = f"<em>{out}</em>"
            if "bold" in node.marks:
                out = f"<strong>{out}</strong>"
            if node.href:
                href = html_lib.escape(node.href)
                out = f'<a href="{href}" rel="{LINK_REL}" target="_blank">{out}</a>'
            return out

        tag = BLOCK_TAGS[node.kind]
        return f"<{tag}>{inner}</{tag}>"

    @classmethod
    def from_html(cls, html: str, history_limit: int = HISTORY_LIMIT) -> "RichTextModel":
        """Build a document from stored HTML. The input is sanitized first."""
        model = cls(history_limit)
        model._discard(model.nodes[model.root].children[0])

        soup = BeautifulSoup(sanitize(html or ""), "html.parser")
        model._parse_blocks(model.root, list(soup.contents))

        if not model.textblocks():
            model._append(model.root, "paragraph")
        model.move_to_end()
        return model

    def _parse_blocks(self, parent_id: int, elements: list) -> None:
        loose: list = []

        def flush():
            if any(not isinstance(e, NavigableString) or e.strip() for e in loose):
                self._parse_inline(self._append(parent_id, "paragraph"), loose)
            loose.clear()

        for element in elements:
            if isinstance(element, NavigableString) or element.name in INLINE_TAGS:
                loose.append(element)
                continue
            flush()

            name = element.name
            if name in ("p", "pre", "li"):
                self._parse_inline(self._append(parent_id, "paragraph"), element.contents)
            elif name in HEADING_TAGS:
                block = self._append(parent_id, "heading", level=HEADING_TAGS[name])
                self._parse_inline(block, element.contents)
            elif name in ("ul", "ol"):
                items = element.find_all("li", recursive=False)
                if items:
                    kind = "bullet_list" if name == "ul" else "ordered_list"
                    container = self._append(parent_id, kind)
                    for item in items:
                        self._parse_inline(self._append(container, "list_item"), item.contents)
            elif name == "blockquote":
                quote = self._append(parent_id, "blockquote")
                self._parse_blocks(quote, list(element.contents))
                if not self.nodes[quote].children:
                    self._append(quote, "paragraph")
            elif name == "hr":
                self._append(parent_id, "horizontal_rule")
            else:
                self._parse_blocks(parent_id, list(element.contents))
        flush()

    def _parse_inline(self, block_id: int, elements: list, marks=frozenset(), href=None) -> None:
        for element in elements:
            if isinstance(element, NavigableString):
                if str(element):
                    self._append(block_id, "text", text=str(element), marks=marks, href=href)
                continue

            name = element.name
            if name in ("strong", "b"):
                self._parse_inline(block_id, element.contents, marks | {"bold"}, href)
            elif name in ("em", "i"):
                self._parse_inline(block_id, element.contents, marks | {"italic"}, href)
            elif name == "a":
                self._parse_inline(block_id, element.contents, marks, element.get("href") or href)
            elif name == "img":
                if element.get("src"):
                    self._append(block_id, "image", src=element["src"], alt=element.get("alt", ""))
            elif name == "br":
                self._append(block_id, "text", text=" ", marks=marks, href=href)
            else:
                self._parse_inline(block_id, element.contents, marks, href)
        self._normalize(block_id)
