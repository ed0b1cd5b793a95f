"""
Help and version rendering for command trees.

Layout (help)
- usage line: "usage: <route> [options] [command] [args]"
- description paragraph (when the command has one)
- "options:" registry order, one aligned row per flag ("-o, --output <arg>")
- "commands:" children without a group, registration order
- one "<group>:" section per group label, in first-seen order

Layout (version)
- "<root name> version <version setting>"

Styling
- Palette keys: usage-label, program-name, usage-section, description-section,
  group-label, flag-name, metavar, children, children-description, program-version,
  panel-title.
- A mapping named __styles__ in __main__ overrides any palette entry.
- Styles apply only when the command is colorful; fancy wraps the output in a panel.
"""
from collections import defaultdict

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .flags import Arity
from .utils import *


def _palette(colorful):
    styles = defaultdict(str, {
        # === Head sections ===
        "usage-label": "bold #00E6FF",  # cyan signature label
        "program-name": "bold #FF4D94",  # magenta-pink brand
        "usage-section": "bold #36C5F0",  # sky-blue
        "description-section": "italic #A3A3A3",  # neutral gray

        # === Sections ===
        "group-label": "bold #FFFFFF",
        "flag-name": "bold #22C55E",
        "metavar": "bold #FFD600",
        "children": "bold #36C5F0",
        "children-description": "#9CA3AF",

        # === Version ===
        "program-version": "bold #00E6FF",

        # === Fancy panel ===
        "panel-title": "bold #FF4D94",
    } | getattr(__import__("__main__"), "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    return styler, text


def _flag_column(flag, styler, text):
    column = Text(", ").join(text(name, styler("flag-name")) for name in flag.names)
    match flag.arity:
        case Arity.REQUIRED:
            column.append(" ").append(text("<arg>", styler("metavar")))
        case Arity.OPTIONAL:
            column.append(" ").append(text("[arg]", styler("metavar")))
    return column


def _sections(command):
    """
    Split children into the ungrouped list and the grouped sections, keeping
    registration order inside each and first-seen order between groups.
    """
    ungrouped = []
    groups = {}
    for child in command.children.values():
        if child.group is None:
            ungrouped.append(child)
        else:
            groups.setdefault(child.group, []).append(child)
    return ungrouped, groups


def render_help(command, /, *, console=Unset):
    """
    Print the help screen of `command` (stdout by default).
    """
    console = coalesce(console, Console())
    styler, text = _palette(command.colorful)

    rows = []
    for flag in command.flags:
        rows.append((_flag_column(flag, styler, text), text(flag.descr, styler("children-description"))))
    ungrouped, groups = _sections(command)
    width = max(
        [len(column) for column, _ in rows] +
        [len(child.name) for child in command.children.values()] +
        [0]
    )

    def aligned(column, descr):
        line = Text("  ").append(column)
        if descr:
            line.append(" " * (width - len(column) + 2)).append(descr)
        return line

    def listing(label, children):
        section = Text("\n").append(text(label, styler("group-label"))).append(":")
        for child in children:
            section.append("\n").append(aligned(
                text(child.name, styler("children")),
                text(child.descr, styler("children-description")),
            ))
        return section

    renders = []
    usage = Text.assemble(
        text("usage", styler("usage-label")),
        ": ",
        text(command.route, styler("program-name")),
        " ",
        text("[options] [command] [args]", styler("usage-section")),
    )
    renders.append(usage)

    if command.descr:
        renders.append(Text("\n").append(text(command.descr, styler("description-section"))))

    if rows:
        options = Text("\n").append(text("options", styler("group-label"))).append(":")
        for column, descr in rows:
            options.append("\n").append(aligned(column, descr))
        renders.append(options)

    if ungrouped:
        renders.append(listing("commands", ungrouped))

    for group, children in groups.items():
        renders.append(listing(group, children))

    renderable = Group(*renders)

    if command.fancy:
        renderable = Panel(
            renderable,
            title=Text.assemble("[", " ", f"{command.root.name} HELP".upper(), " ", "]", style=styler("panel-title")),
            title_align="left",
        )

    console.print(renderable)


def render_version(command, /, *, console=Unset):
    """
    Print "<name> version <version>" for the tree `command` belongs to.

    The version string is the "version" setting looked up from `command`
    through its ancestors ("unknown" when no command sets it).
    """
    console = coalesce(console, Console())
    styler, text = _palette(command.colorful)

    renderable = Text(" version ").join((
        text(command.root.name, styler("program-name")),
        text(command.get("version", "unknown"), styler("program-version")),
    ))

    if command.fancy:
        renderable = Panel(
            renderable,
            title=Text.assemble("[", " ", f"{command.root.name} VERSION".upper(), " ", "]", style=styler("panel-title")),
            title_align="left",
        )

    console.print(renderable)


__all__ = (
    "render_help",
    "render_version",
)
