#!/usr/bin/python3
import os
import re
import shutil
import sys
import tempfile
from pathlib import Path

import click

JUNK_COLUMN = 120

# we do set ops on this string, keep it small
JUNK_CHARS = "{};"

WS_REGEX = re.compile(r'\s')
# junk and whitespace up to the end of the line, only tried where a run starts
END_JUNK_WS_REGEX = re.compile(r"(?<![\s{0}])[\s{0}]+$".format(re.escape(JUNK_CHARS)))
# indentation followed by junk and whitespace
START_JUNK_WS_REGEX = re.compile(r'^\s[\s{}]*'.format(re.escape(JUNK_CHARS)))


def strip_whitespace(s):
    return WS_REGEX.sub('', s)


def is_junk(s):
    return all(c in JUNK_CHARS for c in s)


def split_lines(content):
    lines = content.split('\n')
    if lines[-1] == '':
        lines.pop()
    return [line[:-1] if line.endswith('\r') else line for line in lines]

assert split_lines('') == []
assert split_lines('a\r\nb\n') == ['a', 'b']
assert split_lines('a\n\n') == ['a', '']


class Formatter:
    """Moves braces and semicolons out to a fixed column.

    Lines holding nothing but junk are merged into the line above, junk
    at the start of an indented line is handed back to its predecessor,
    and trailing junk is padded out to `junk_column`.

    >>> Formatter(junk_column=8).format('foo()\\n{\\n')
    'foo()   {'
    """

    def __init__(self, junk_column=JUNK_COLUMN, leading_junk=True):
        self.column = junk_column
        self.propagate_leading = leading_junk

    def junk_column(self, junk_column):
        self.column = junk_column
        return self

    def leading_junk(self, enabled=True):
        self.propagate_leading = enabled
        return self

    def format(self, content):
        lines = split_lines(content)
        self.collapse_lines(lines)
        # back to front, so junk handed to the previous line still gets restyled
        for index in range(len(lines) - 1, -1, -1):
            moved = ''
            if self.propagate_leading and index > 0:
                lines[index], moved = self.take_leading_junk(lines[index])
            lines[index] = self.restyle(lines[index])
            if moved:
                lines[index - 1] += moved
        return '\n'.join(lines)

    def collapse_lines(self, lines):
        """Merges junk-only lines into the previous line."""
        index = 1
        while index < len(lines):
            line = strip_whitespace(lines[index])
            if line and is_junk(line):
                lines[index - 1] += line
                del lines[index]
            else:
                index += 1

    def take_leading_junk(self, line):
        match = START_JUNK_WS_REGEX.match(line)
        if match is None:
            return line, ''
        junk = strip_whitespace(match.group())
        if not junk:
            # plain indentation
            return line, ''
        return line[match.end():], junk

    def restyle(self, line):
        match = END_JUNK_WS_REGEX.search(line)
        if match is None:
            return line
        junk = strip_whitespace(match.group())
        if not junk:
            # only trailing whitespace, leave it alone
            return line
        size_before = match.start()
        filler = ' ' * max(0, self.column - size_before)
        return line[:size_before] + filler + junk


def flatten_files(paths):
    for path in paths:
        if path.is_dir():
            yield from sorted(p for p in path.rglob('*') if p.is_file())
        else:
            yield path


def format_file(formatter, path):
    with open(path, 'r', encoding='utf-8', newline='') as f:
        data = f.read()

    # write next to the original so the final replace stays on one filesystem
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix='.' + path.name + '.')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(formatter.format(data))
        shutil.copymode(path, tmp)
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise


def format_stream(formatter, stream_in, stream_out):
    stream_out.write(formatter.format(stream_in.read()))
    stream_out.flush()


@click.command()
@click.argument('inputs', nargs=-1, type=click.Path(path_type=Path))
@click.option('--junk-column', default=JUNK_COLUMN, show_default=True,
              type=click.IntRange(min=0),
              help='The column to start storing junk (semicolons, braces) at.')
@click.option('--leading-junk/--no-leading-junk', default=True, show_default=True,
              help='Move junk at the start of a line onto the previous line.')
def main(inputs, junk_column, leading_junk):
    """A cursed formatting tool.

    Transforms C-style code into a more Pythonic format. Files are
    formatted in-place through a temporary file, directories are searched
    recursively. Without INPUTS, standard input is formatted to standard
    output.

    Your code is assumed to be formatted well already, indentation is not
    touched.
    """
    formatter = Formatter().junk_column(junk_column).leading_junk(leading_junk)
    try:
        # empty directories format nothing, stdin is only read without INPUTS
        if not inputs:
            click.echo('Formatting standard input to standard output', err=True)
            format_stream(formatter, click.get_text_stream('stdin'), click.get_text_stream('stdout'))
            return
        for path in flatten_files(inputs):
            click.echo(f'Formatting {path}', err=True)
            format_file(formatter, path)
    except (OSError, ValueError) as e:
        click.secho(f'Error: {e}', fg='red', err=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
