"""Tests for prompt_toolkit completion and suggestions"""

from prompt_toolkit.document import Document

from db_console.command import CommandInput, CommandLeaf, Subcommand, get_word
from db_console.line_reader import CommandAutoSuggest, CommandCompleter, create_key_bindings


def noop(context, args):
    pass


def build_tree() -> Subcommand:
    root = Subcommand("")
    database = Subcommand("database")
    database.add(
        CommandLeaf(
            "create",
            "Create a database",
            noop,
            [CommandInput.required("db", get_word, completer=lambda partial: ["social", "sales"])],
        )
    )
    database.add(CommandLeaf("delete", "Delete a database", noop, [CommandInput.required("db", get_word)]))
    root.add(database)
    root.add(CommandLeaf("exit", "Exit console", noop))
    return root


def completion_texts(text: str) -> list[str]:
    completer = CommandCompleter(build_tree())
    return [c.text for c in completer.get_completions(Document(text, cursor_position=len(text)), None)]


def test_completes_group_name():
    completer = CommandCompleter(build_tree())
    completions = list(completer.get_completions(Document("data", cursor_position=4), None))
    assert [c.text for c in completions] == ["database"]
    assert completions[0].start_position == -4


def test_completes_subcommands_after_space():
    assert completion_texts("database ") == ["create", "delete"]


def test_completes_arguments():
    assert completion_texts("database create ") == ["social", "sales"]


def test_no_completions_for_unknown_prefix():
    assert completion_texts("frob") == []


def test_auto_suggest_single_candidate():
    suggest = CommandAutoSuggest(build_tree())
    suggestion = suggest.get_suggestion(None, Document("database cr", cursor_position=11))
    assert suggestion is not None
    assert suggestion.text == "eate"


def test_auto_suggest_needs_one_candidate():
    suggest = CommandAutoSuggest(build_tree())
    assert suggest.get_suggestion(None, Document("database ", cursor_position=9)) is None
    assert suggest.get_suggestion(None, Document("", cursor_position=0)) is None


def test_auto_suggest_only_at_end_of_input():
    suggest = CommandAutoSuggest(build_tree())
    assert suggest.get_suggestion(None, Document("database cr", cursor_position=3)) is None


def test_multiline_frames_bind_enter():
    tree = build_tree()
    single_line_keys = {binding.keys for binding in create_key_bindings(tree, multiline=False).bindings}
    multiline_keys = {binding.keys for binding in create_key_bindings(tree, multiline=True).bindings}
    assert len(multiline_keys) == len(single_line_keys) + 1
