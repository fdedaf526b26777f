import io
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from ellang.config import ParserConfig
from ellang.fs import FileSystem, LocalFileSystem
from ellang.model import TRANSITION_GROUP, ExclusionDatabase, ExclusionKind, ToggleDirection
from ellang.parser import VALIDATE_SCAN_LINES, ExclusionParser

SAMPLE = Path(__file__).parent / "sample.el"


class MemoryFileSystem(FileSystem):
    """In-memory files; ``sizes`` can override the reported size."""

    def __init__(self, files, sizes=None):
        self.files = files
        self.sizes = sizes or {}
        self.reads = []

    def exists(self, path):
        return path in self.files

    def size(self, path):
        return self.sizes.get(path, len(self.files[path].encode("utf-8")))

    def read_text(self, path):
        self.reads.append(path)
        return self.files[path]


class TestParseSample(unittest.TestCase):
    """Parse the bundled sample file, which uses every construct."""

    def setUp(self):
        self.parser = ExclusionParser()
        self.result = self.parser.parse_file(str(SAMPLE))
        self.db = self.parser.get_data()

    def test_success_and_counts(self):
        self.assertTrue(self.result.success, self.result.error_message)
        self.assertEqual(self.result.warnings, [])
        self.assertEqual(self.result.lines_processed, 27)
        self.assertEqual(self.result.exclusions_parsed, 12)
        self.assertEqual(self.result.exclusion_counts[ExclusionKind.BLOCK], 3)
        self.assertEqual(self.result.exclusion_counts[ExclusionKind.TOGGLE], 5)
        self.assertEqual(self.result.exclusion_counts[ExclusionKind.FSM], 2)
        self.assertEqual(self.result.exclusion_counts[ExclusionKind.CONDITION], 2)
        self.assertEqual(self.db.total_exclusion_count(), 12)

    def test_header_metadata(self):
        self.assertEqual(self.db.generated_by, "jdoe")
        self.assertEqual(self.db.format_version, "2")
        self.assertEqual(self.db.generation_date, "Mon Jan 15 10:30:00 2024")
        self.assertEqual(self.db.exclusion_mode, "default")
        self.assertEqual(self.parser.last_format_version, "2")
        self.assertEqual(self.db.file_name, str(SAMPLE))

    def test_comments_preserved(self):
        self.assertEqual(len(self.result.comments), 7)
        self.assertEqual(self.result.comments[1], "// This file contains the Excluded objects")

    def test_scopes(self):
        self.assertEqual(set(self.db.scopes), {"tb.dut.u_ctrl", "fifo_ctrl"})
        ctrl = self.db.scopes["tb.dut.u_ctrl"]
        fifo = self.db.scopes["fifo_ctrl"]
        self.assertFalse(ctrl.is_module)
        self.assertEqual(ctrl.checksum, "1234567890")
        self.assertTrue(fifo.is_module)
        self.assertEqual(fifo.checksum, "987654321")

    def test_block(self):
        block = self.db.scopes["tb.dut.u_ctrl"].blocks["161"]
        self.assertEqual(block.checksum, "1104666086")
        self.assertEqual(block.source_code, "do_db_reg_update = 1'b0;")
        self.assertEqual(block.annotation, "Unreachable reset branch")

    def test_annotation_applies_to_next_record_only(self):
        self.assertIsNone(self.db.scopes["tb.dut.u_ctrl"].blocks["162"].annotation)

    def test_toggles(self):
        toggles = self.db.scopes["tb.dut.u_ctrl"].toggles
        self.assertEqual(
            [t.direction for t in toggles["carry"]],
            [ToggleDirection.ONE_TO_ZERO, ToggleDirection.ZERO_TO_ONE],
        )
        self.assertEqual(toggles["cnt_frac"][0].bit_index, 0)
        self.assertEqual(toggles["cnt_frac"][0].net_description, "net cnt_frac[16:0]")
        self.assertIsNone(toggles["reset_vector"][0].bit_index)
        empty = self.db.scopes["fifo_ctrl"].toggles["empty"][0]
        self.assertIs(empty.direction, ToggleDirection.BOTH)

    def test_fsm_state_and_transition(self):
        fsms = self.db.scopes["tb.dut.u_ctrl"].fsms
        state = fsms["state"][0]
        self.assertEqual(state.checksum, "85815111")
        self.assertEqual(state.annotation, "Debug only FSM state")

        transition = fsms[TRANSITION_GROUP][0]
        self.assertTrue(transition.is_transition)
        self.assertEqual(transition.from_state, "SND_RD_ADDR1")
        self.assertEqual(transition.to_state, "IDLE")
        self.assertEqual(transition.transition_id, "11->0")
        self.assertIsNone(transition.annotation)

    def test_condition(self):
        cond = self.db.scopes["tb.dut.u_ctrl"].conditions["2"]
        self.assertEqual(cond.checksum, "2940925445")
        self.assertEqual(cond.expression, "(a && b != 2'b0)")
        self.assertEqual(cond.parameters, "1 -1")
        self.assertEqual(cond.coverage, '1 "01"')

    def test_statistics(self):
        stats = self.parser.get_last_parse_statistics()
        self.assertEqual(stats.total_scopes, 2)
        self.assertEqual(stats.module_scopes, 1)
        self.assertEqual(stats.annotated_exclusions, 3)

    def test_validate_file(self):
        self.assertTrue(self.parser.validate_file(str(SAMPLE)))


class TestParseString(unittest.TestCase):
    def setUp(self):
        self.parser = ExclusionParser()

    def test_scenario_inline_scope_checksum(self):
        """INSTANCE:top "999" followed by a Block line."""
        result = self.parser.parse_string(
            'INSTANCE:top "999"\n'
            'Block 161 "1104666086" "x = 1\'b0;"\n'
        )
        self.assertTrue(result.success)
        db = self.parser.get_data()
        self.assertEqual(list(db.scopes), ["top"])
        scope = db.scopes["top"]
        self.assertFalse(scope.is_module)
        self.assertEqual(scope.checksum, "999")
        block = scope.blocks["161"]
        self.assertEqual(block.block_id, "161")
        self.assertEqual(block.checksum, "1104666086")
        self.assertEqual(block.source_code, "x = 1'b0;")

    def test_scenario_condition_split(self):
        self.parser.parse_string(
            'INSTANCE:top\n'
            'Condition 2 "111" "(a && b) 1 -1" (1 "01")\n'
        )
        cond = self.parser.get_data().scopes["top"].conditions["2"]
        self.assertEqual(cond.expression, "(a && b)")
        self.assertEqual(cond.parameters, "1 -1")
        self.assertEqual(cond.coverage, '1 "01"')

    def test_condition_with_several_groups(self):
        self.parser.parse_string(
            'INSTANCE:top\n'
            'Condition 3 "1" "(a) || (b) 1 -1" (1 "01")\n'
        )
        cond = self.parser.get_data().scopes["top"].conditions["3"]
        self.assertEqual(cond.expression, "(a) || (b)")
        self.assertEqual(cond.parameters, "1 -1")
        self.assertEqual(cond.coverage, '1 "01"')

    def test_toggle_without_direction_is_both(self):
        self.parser.parse_string('INSTANCE:top\nToggle sig "desc"\n')
        toggle = self.parser.get_data().scopes["top"].toggles["sig"][0]
        self.assertIs(toggle.direction, ToggleDirection.BOTH)
        self.assertIsNone(toggle.bit_index)
        self.assertEqual(toggle.net_description, "desc")

    def test_toggle_bit_index_without_space(self):
        self.parser.parse_string('INSTANCE:top\nToggle 0to1 bus[5] "net bus[7:0]"\n')
        toggle = self.parser.get_data().scopes["top"].toggles["bus"][0]
        self.assertEqual(toggle.bit_index, 5)
        self.assertIs(toggle.direction, ToggleDirection.ZERO_TO_ONE)

    def test_annotation_attaches_to_first_block_only(self):
        self.parser.parse_string(
            'INSTANCE:top\n'
            'ANNOTATION: "why"\n'
            'Block 1 "1" "a;"\n'
            'Block 2 "2" "b;"\n'
        )
        blocks = self.parser.get_data().scopes["top"].blocks
        self.assertEqual(blocks["1"].annotation, "why")
        self.assertIsNone(blocks["2"].annotation)

    def test_checksum_line_is_consumed_by_next_scope(self):
        self.parser.parse_string(
            'CHECKSUM: "42"\n'
            'INSTANCE:a\n'
            'INSTANCE:b\n'
        )
        scopes = self.parser.get_data().scopes
        self.assertEqual(scopes["a"].checksum, "42")
        self.assertEqual(scopes["b"].checksum, "")

    def test_invalid_checksum_warns(self):
        result = self.parser.parse_string('CHECKSUM: "12ab"\nINSTANCE:a\n')
        self.assertTrue(result.success)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("Invalid checksum", result.warnings[0])

    def test_checksum_validation_can_be_disabled(self):
        parser = ExclusionParser(ParserConfig(validate_checksums=False))
        result = parser.parse_string('CHECKSUM: "12ab"\nINSTANCE:a\n')
        self.assertEqual(result.warnings, [])

    def test_unrecognized_line_warns_in_lenient_mode(self):
        result = self.parser.parse_string('INSTANCE:top\nbogus line\nBlock 1 "1" "a;"\n')
        self.assertTrue(result.success)
        self.assertEqual(result.warnings, ["Unrecognized line format at line 2: bogus line"])
        self.assertEqual(result.exclusions_parsed, 1)

    def test_unrecognized_line_fails_in_strict_mode(self):
        parser = ExclusionParser(ParserConfig(strict_mode=True))
        result = parser.parse_string('INSTANCE:top\nbogus line\nBlock 1 "1" "a;"\n')
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "Line 2: Unrecognized line format: bogus line")
        self.assertFalse(parser.has_data())

    def test_record_before_scope_is_ignored(self):
        result = self.parser.parse_string(
            'ANNOTATION: "lost"\n'
            'Block 1 "1" "a;"\n'
            'INSTANCE:top\n'
            'Block 2 "2" "b;"\n'
        )
        self.assertTrue(result.success)
        self.assertEqual(result.exclusions_parsed, 1)
        self.assertEqual(len(result.warnings), 1)
        self.assertIsNone(self.parser.get_data().scopes["top"].blocks["2"].annotation)

    def test_annotation_block_captures_begin_line_only(self):
        result = self.parser.parse_string(
            'INSTANCE:top\n'
            'ANNOTATION_BEGIN: "first"\n'
            'second line of the note\n'
            'ANNOTATION_END\n'
            'Block 1 "1" "a;"\n'
        )
        blocks = self.parser.get_data().scopes["top"].blocks
        self.assertEqual(list(blocks), ["1"])
        self.assertEqual(blocks["1"].annotation, "first")
        self.assertEqual(result.warnings, [])

    def test_records_inside_annotation_block_are_parsed(self):
        result = self.parser.parse_string(
            'INSTANCE:top\n'
            'ANNOTATION_BEGIN: "x"\n'
            'line two\n'
            'Block 1 "1" "a;"\n'
            'Block 2 "2" "b;"\n'
            'ANNOTATION_END\n'
        )
        self.assertTrue(result.success)
        self.assertEqual(result.exclusions_parsed, 2)
        self.assertEqual(result.warnings, [])
        blocks = self.parser.get_data().scopes["top"].blocks
        self.assertEqual(blocks["1"].annotation, "x")
        self.assertIsNone(blocks["2"].annotation)

    def test_unterminated_annotation_block_warns(self):
        result = self.parser.parse_string(
            'INSTANCE:top\nANNOTATION_BEGIN: "x"\nline two\nBlock 1 "1" "a;"\nBlock 2 "2" "b;"\n'
        )
        self.assertTrue(result.success)
        self.assertEqual(result.exclusions_parsed, 2)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("ANNOTATION_END", result.warnings[0])

    def test_escaped_quotes(self):
        self.parser.parse_string(
            'INSTANCE:top\n'
            'ANNOTATION: "see \\"spec\\""\n'
            'Block 1 "1" "s = \\"a\\";"\n'
        )
        block = self.parser.get_data().scopes["top"].blocks["1"]
        self.assertEqual(block.annotation, 'see "spec"')
        self.assertEqual(block.source_code, 's = "a";')

    def test_comments_not_preserved_when_disabled(self):
        parser = ExclusionParser(ParserConfig(preserve_comments=False))
        result = parser.parse_string("// Format Version: 3\n")
        self.assertEqual(result.comments, [])
        self.assertEqual(parser.last_format_version, "3")

    def test_parse_stream(self):
        result = self.parser.parse_stream(io.StringIO('MODULE:m\nFsm st "1"\n'))
        self.assertTrue(result.success)
        self.assertTrue(self.parser.get_data().scopes["m"].is_module)

    def test_each_parse_replaces_database(self):
        self.parser.parse_string('INSTANCE:a\n')
        first = self.parser.get_data()
        self.parser.parse_string('INSTANCE:b\n')
        self.assertEqual(list(self.parser.get_data().scopes), ["b"])
        self.assertEqual(list(first.scopes), ["a"])

    def test_merge_on_load_accumulates(self):
        parser = ExclusionParser(ParserConfig(merge_on_load=True))
        parser.parse_string('INSTANCE:a\nBlock 1 "1" "x;"\n')
        parser.parse_string('INSTANCE:b\nBlock 2 "2" "y;"\n')
        self.assertEqual(set(parser.get_data().scopes), {"a", "b"})

    def test_failed_parse_with_merge_on_load_keeps_data(self):
        parser = ExclusionParser(ParserConfig(merge_on_load=True, strict_mode=True))
        parser.parse_string('INSTANCE:a\n')
        result = parser.parse_string('INSTANCE:b\nbogus\n')
        self.assertFalse(result.success)
        self.assertEqual(list(parser.get_data().scopes), ["a"])

    def test_set_data_and_clear(self):
        db = ExclusionDatabase()
        db.get_or_create_scope("x")
        self.parser.set_data(db)
        self.assertIs(self.parser.get_data(), db)
        self.assertIs(self.parser.data_manager.get_data(), db)
        self.assertTrue(self.parser.has_data())
        self.parser.clear()
        self.assertFalse(self.parser.has_data())


class TestParseFiles(unittest.TestCase):
    def test_missing_file_fails_without_state_change(self):
        parser = ExclusionParser()
        parser.parse_string('INSTANCE:keep\n')
        result = parser.parse_file("/nonexistent/path.el")
        self.assertFalse(result.success)
        self.assertIn("File does not exist", result.error_message)
        self.assertEqual(list(parser.get_data().scopes), ["keep"])

    def test_oversize_file_is_rejected_before_reading(self):
        fs = MemoryFileSystem({"big.el": 'INSTANCE:top\n'}, sizes={"big.el": 2048})
        parser = ExclusionParser(ParserConfig(max_file_size=1024), fs=fs)
        result = parser.parse_file("big.el")
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "File too large: 2048 bytes (max: 1024)")
        self.assertEqual(parser.get_data().scope_count(), 0)
        self.assertEqual(fs.reads, [])

    def test_batch_combines_results(self):
        fs = MemoryFileSystem({
            "a.el": 'INSTANCE:top\nBlock 1 "1" "a;"\n',
            "b.el": 'INSTANCE:top\nBlock 2 "2" "b;"\nToggle s "d"\n',
        })
        parser = ExclusionParser(fs=fs)
        result = parser.parse_files(["a.el", "b.el"])
        self.assertTrue(result.success)
        self.assertEqual(result.exclusions_parsed, 3)
        self.assertEqual(result.lines_processed, 5)
        scope = parser.get_data().scopes["top"]
        self.assertEqual(set(scope.blocks), {"1", "2"})
        self.assertIs(parser.last_result, result)

    def test_batch_continues_past_failure(self):
        fs = MemoryFileSystem({"a.el": 'INSTANCE:top\n'})
        parser = ExclusionParser(fs=fs)
        result = parser.parse_files(["missing.el", "a.el"])
        self.assertTrue(result.success)
        self.assertEqual(len(result.warnings), 1)
        self.assertTrue(result.warnings[0].startswith("Failed to parse missing.el:"))
        self.assertIn("top", parser.get_data().scopes)

    def test_batch_aborts_and_reports_file(self):
        fs = MemoryFileSystem({"a.el": 'INSTANCE:top\n'})
        parser = ExclusionParser(fs=fs)
        result = parser.parse_files(["a.el", "missing.el"], continue_on_error=False)
        self.assertFalse(result.success)
        self.assertIn("missing.el", result.error_message)

    def test_validate_file_rejects_other_text(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "notes.txt")
            with open(path, "w") as fh:
                fh.write("just some notes\n")
            self.assertFalse(ExclusionParser().validate_file(path))
        self.assertFalse(ExclusionParser().validate_file("/nonexistent/path.el"))

    def test_validate_file_reads_only_the_header_lines(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "late.el")
            with open(path, "w") as fh:
                fh.write("\n" * VALIDATE_SCAN_LINES + "// Format Version: 2\n")
            with mock.patch.object(LocalFileSystem, "read_text") as read_text:
                self.assertFalse(ExclusionParser().validate_file(path))
            read_text.assert_not_called()

            head = LocalFileSystem().read_head(path, VALIDATE_SCAN_LINES + 1)
            self.assertEqual(len(head), VALIDATE_SCAN_LINES + 1)
            self.assertEqual(head[-1], "// Format Version: 2")


if __name__ == '__main__':
    unittest.main()
