"""Tests for the command tree: token matching, argument reading and dispatch"""

import pytest

from db_console.command import (
    CommandInput,
    CommandLeaf,
    CommandToken,
    ReplError,
    Requiredness,
    Subcommand,
    get_remainder,
    get_word,
)
from db_console.statement import parse_one_query


def noop(context, args):
    pass


def database_tree() -> Subcommand:
    return (
        Subcommand("")
        .add(
            Subcommand("database")
            .add(CommandLeaf("list", "List databases.", noop))
            .add(CommandLeaf("create", "Create a database.", noop, [CommandInput.required("db", get_word)]))
            .add(
                CommandLeaf(
                    "create-init",
                    "Create and load a database.",
                    noop,
                    [
                        CommandInput.required("db", get_word),
                        CommandInput.required("schema file", get_word),
                        CommandInput.required("data file", get_word),
                        CommandInput.optional("schema sha256", get_word),
                        CommandInput.optional("data sha256", get_word),
                    ],
                )
            )
        )
        .add(
            Subcommand("user").add(
                CommandLeaf(
                    "create",
                    "Create a user.",
                    noop,
                    [CommandInput.required("name", get_word), CommandInput.hidden("password", get_word, get_word)],
                )
            )
        )
    )


class TestReaders:
    def test_get_word_skips_leading_whitespace(self):
        assert get_word("  foo bar") == 5

    def test_get_word_reads_to_end(self):
        assert get_word("foo") == 3

    def test_get_word_blank(self):
        assert get_word("   \n") is None

    def test_get_remainder(self):
        assert get_remainder(" rest of it ") == len(" rest of it ")
        assert get_remainder("  ") is None


class TestCommandToken:
    def test_match_returns_prefix_remainder_and_offset(self):
        assert CommandToken("list").match("  list rest") == ("  list", " rest", 6)

    def test_no_match_on_other_word(self):
        assert CommandToken("list").match("lost") is None

    def test_requires_word_boundary(self):
        assert CommandToken("create").match("create-init db") is None

    def test_single_line_prefix_cannot_cross_newline(self):
        assert CommandToken("commit").match("\ncommit") is None
        assert CommandToken("commit").match("\ncommit", multiline=True) == ("\ncommit", "", 7)

    def test_empty_token_matches_anything(self):
        assert CommandToken("").match("match $x;") == ("", "match $x;", 0)

    def test_completes_partial_word(self):
        assert CommandToken("database").completes("data")
        assert not CommandToken("database").completes("user")
        assert not CommandToken("create-init").completes("create ")


class TestCommandLeaf:
    def test_required_after_optional_rejected(self):
        """Test that a required input cannot follow an optional one"""
        with pytest.raises(ValueError):
            CommandLeaf(
                "bad",
                "Bad command.",
                noop,
                [CommandInput.optional("first", get_word), CommandInput.required("second", get_word)],
            )

    def test_hidden_input_needs_hidden_reader(self):
        with pytest.raises(ValueError):
            CommandInput("password", get_word, Requiredness.REQUIRED_HIDDEN)

    def test_missing_required_argument(self):
        leaf = CommandLeaf("create", "Create.", noop, [CommandInput.required("db", get_word)])
        with pytest.raises(ReplError, match="Missing argument 1: db"):
            leaf.match_first("create")

    def test_optional_arguments_may_be_absent(self):
        leaf = database_tree().subcommands[0].subcommands[2]
        command, args, end = leaf.match_first("create-init db schema.tql data.tql")
        assert command is leaf
        assert args == ["db", "schema.tql", "data.tql"]
        assert end == len("create-init db schema.tql data.tql")

    def test_optional_arguments_stay_on_their_line(self):
        leaf = database_tree().subcommands[0].subcommands[2]
        _, args, end = leaf.match_first("create-init db s.tql d.tql\ndatabase list\n")
        assert args == ["db", "s.tql", "d.tql"]
        assert end == len("create-init db s.tql d.tql")

    def test_coerced_optional_arguments(self):
        leaf = database_tree().subcommands[0].subcommands[2]
        _, args, _ = leaf.match_first("create-init db s.tql d.tql abc", coerce_to_one_line=True)
        assert args == ["db", "s.tql", "d.tql", "abc"]

    def test_hidden_argument_is_prompted(self):
        leaf = CommandLeaf(
            "create",
            "Create.",
            noop,
            [CommandInput.required("name", get_word), CommandInput.hidden("password", get_word, get_word)],
        )
        prompts = []

        def hidden_input(prompt):
            prompts.append(prompt)
            return "  pa55word  "

        _, args, _ = leaf.match_first("create alice", hidden_input=hidden_input)
        assert args == ["alice", "pa55word"]
        assert prompts == ["password: "]

    def test_hidden_argument_must_be_one_value(self):
        leaf = CommandLeaf("create", "Create.", noop, [CommandInput.hidden("password", get_word, get_word)])
        with pytest.raises(ReplError, match="Could not read input for 'password'"):
            leaf.match_first("create", hidden_input=lambda prompt: "two words")

    def test_hidden_argument_interrupted(self):
        leaf = CommandLeaf("create", "Create.", noop, [CommandInput.hidden("password", get_word, get_word)])

        def interrupted(prompt):
            raise KeyboardInterrupt

        with pytest.raises(ReplError):
            leaf.match_first("create", hidden_input=interrupted)

    def test_hidden_argument_given_inline(self):
        leaf = CommandLeaf("create", "Create.", noop, [CommandInput.hidden("password", get_word, get_word)])
        _, args, _ = leaf.match_first("create inline")
        assert args == ["inline"]

    def test_execute_calls_executor(self):
        calls = []
        leaf = CommandLeaf("run", "Run.", lambda context, args: calls.append((context, args)))
        leaf.execute("ctx", ["a"])
        assert calls == [("ctx", ["a"])]


class TestSubcommand:
    def test_resolves_leaf_and_arguments(self):
        """Test that the trailing newline is not part of the argument"""
        tree = database_tree()
        command, args, end = tree.match_first("database create foo\n")
        assert command.token.token == "create"
        assert args == ["foo"]
        assert end == len("database create foo")

    def test_longest_sibling_wins(self):
        tree = database_tree()
        command, args, _ = tree.match_first("database create-init db s d")
        assert command.token.token == "create-init"
        assert args == ["db", "s", "d"]

    def test_longest_first_regardless_of_insertion_order(self):
        group = Subcommand("")
        group.add(CommandLeaf("", "Default.", noop, [CommandInput.required("text", get_remainder)]))
        group.add(CommandLeaf("commit", "Commit.", noop))
        command, args, _ = group.match_first("commit")
        assert command.token.token == "commit"
        assert args == []

    def test_duplicate_tokens_rejected(self):
        group = Subcommand("database").add(CommandLeaf("list", "List.", noop))
        with pytest.raises(ValueError, match="Duplicate subcommands with token: list"):
            group.add(CommandLeaf("list", "List again.", noop))

    def test_prefix_siblings_allowed(self):
        group = Subcommand("database").add(CommandLeaf("create", "Create.", noop))
        group.add(CommandLeaf("create-init", "Create and load.", noop))
        assert len(group.subcommands) == 2

    def test_unrecognised_subcommand(self):
        tree = database_tree()
        with pytest.raises(ReplError) as excinfo:
            tree.match_first("database frobnicate x")
        assert str(excinfo.value) == (
            "Unrecognised 'database' subcommand: 'frobnicate x', please type 'help' to see the help menu."
        )

    def test_unrecognised_command_at_root(self):
        with pytest.raises(ReplError, match="Unrecognised command: hello"):
            database_tree().match_first("hello")

    def test_other_group_returns_none(self):
        group = Subcommand("user")
        assert group.match_first("database list") is None

    def test_offsets_are_absolute(self):
        tree = database_tree()
        input = "database list\ndatabase create foo"
        _, _, end = tree.match_first(input)
        assert input[:end] == "database list"
        _, args, second_end = tree.match_first(input[end:].lstrip())
        assert args == ["foo"]
        assert second_end == len("database create foo")

    def test_is_complete_command(self):
        tree = database_tree()
        assert tree.is_complete_command("database list")
        assert not tree.is_complete_command("database create")
        assert not tree.is_complete_command("nothing here")

    def test_is_complete_command_does_not_prompt(self):
        """Test that a hidden argument is never prompted for while validating"""
        assert not database_tree().is_complete_command("user create alice")

    def test_multiline_query_leaf(self):
        group = Subcommand("")
        group.add(CommandLeaf("commit", "Commit.", noop))
        group.add(
            CommandLeaf("", "Run query.", noop, [CommandInput.required("query", parse_one_query)], multiline=True)
        )
        input = "match $x isa person;\n\ncommit\n"
        command, args, end = group.match_first(input)
        assert command.token.token == ""
        assert args == ["match $x isa person;"]
        command, _, _ = group.match_first(input[end:].lstrip())
        assert command.token.token == "commit"

    def test_incomplete_query_is_not_complete(self):
        group = Subcommand("").add(
            CommandLeaf("", "Run query.", noop, [CommandInput.required("query", parse_one_query)], multiline=True)
        )
        assert not group.is_complete_command("match $x isa person;\n")
        assert group.is_complete_command("match $x isa person;\n\n")


class TestUsage:
    def test_usage_description(self):
        usages = dict(database_tree().usage_description())
        assert usages["database list"] == "List databases."
        assert usages["database create <db>"] == "Create a database."
        assert (
            "database create-init <db> <schema file> <data file> [schema sha256] [data sha256]" in usages
        )
        assert usages["user create <name> <password (enter in hidden input)>"] == "Create a user."


class TestCompletions:
    def test_group_token_completion(self):
        assert database_tree().compute_completions("data") == ["database"]

    def test_children_after_whitespace(self):
        completions = database_tree().compute_completions("database ")
        assert set(completions) == {"list", "create", "create-init"}

    def test_partial_child_token(self):
        completions = database_tree().compute_completions("database cr")
        assert set(completions) == {"create", "create-init"}

    def test_no_completion_for_finished_token(self):
        assert "database" not in database_tree().compute_completions("database")

    def test_argument_completer(self):
        names = ["alpha", "beta", "alphabet"]
        leaf = CommandLeaf(
            "delete",
            "Delete.",
            noop,
            [CommandInput.required("db", get_word, lambda partial: [n for n in names if n.startswith(partial)])],
        )
        assert leaf.compute_completions("delete al") == ["alpha", "alphabet"]
        assert leaf.compute_completions("delete ") == names

    def test_completion_never_equals_partial_word(self):
        leaf = CommandLeaf(
            "delete",
            "Delete.",
            noop,
            [CommandInput.required("db", get_word, lambda partial: ["alpha", "alphabet"])],
        )
        assert leaf.compute_completions("delete alpha") == ["alphabet"]

    def test_no_completion_past_last_argument(self):
        leaf = CommandLeaf("delete", "Delete.", noop, [CommandInput.required("db", get_word, lambda p: ["x"])])
        assert leaf.compute_completions("delete x ") == []
