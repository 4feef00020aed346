from markdown_it import MarkdownIt
from markdown_it.rules_block import StateBlock


def speaker_notes_plugin(md: MarkdownIt):
    """Markdown-it-py plugin that turns lines beginning with `???` into
    ``speaker_note`` block tokens.  Consecutive `???` lines are joined into a
    single token, one line of note text each.
    """

    def _note_block(state: StateBlock, start_line: int, end_line: int, silent: bool):
        src = state.src

        def _note_text(line: int):
            line_start = state.bMarks[line] + state.tShift[line]
            if state.sCount[line] - state.blkIndent >= 4:
                return None  # indented code
            if not src.startswith('???', line_start):
                return None
            return src[line_start + 3:state.eMarks[line]].strip()

        first = _note_text(start_line)
        if first is None:
            return False
        if silent:
            return True

        lines = [first]
        next_line = start_line + 1
        while next_line < end_line:
            text = _note_text(next_line)
            if text is None:
                break
            lines.append(text)
            next_line += 1

        token = state.push('speaker_note', '', 0)
        token.content = "\n".join(line for line in lines if line)
        token.map = [start_line, next_line]
        token.block = True

        state.line = next_line
        return True

    # Before paragraph so the marker never ends up as literal text
    md.block.ruler.before(
        'paragraph', 'speaker_notes', _note_block,
        {'alt': ['paragraph', 'reference', 'blockquote', 'list']},
    )
