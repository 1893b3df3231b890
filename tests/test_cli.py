"""Command-line entry point: load, run, dump."""

import pytest

from isa import Opcode
from simulator import main

ADDI, MUL, JMP, HLT = Opcode.ADDI, Opcode.MUL, Opcode.JMP, Opcode.HLT


def run_main(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


@pytest.fixture
def paths(tmp_path):
    return tmp_path / "in.txt", tmp_path / "out.txt"


class TestCLI:
    def test_writes_dump(self, paths, make_input):
        infile, outfile = paths
        infile.write_text(make_input(data=[(600, 0x1234)],
                                     program=[(ADDI, 0, 0, 3), (HLT, 0, 0, 0)]))
        assert run_main([str(infile), str(outfile)]) == 0
        lines = outfile.read_text().splitlines()
        assert len(lines) == 1024
        assert lines[0] == "0000 : 0001 0000"
        assert lines[1] == "0001 : 0000 0011"
        assert lines[600] == "0600 : 0001 0010"
        assert lines[601] == "0601 : 0011 0100"

    def test_registers_flag(self, paths, make_input, capsys):
        infile, outfile = paths
        infile.write_text(make_input(program=[
            (ADDI, 0, 0, 3), (ADDI, 1, 1, 4), (MUL, 2, 0, 1), (HLT, 0, 0, 0)]))
        assert run_main([str(infile), str(outfile), "--registers"]) == 0
        out = capsys.readouterr().out
        assert "R0  =      3" in out
        assert "R1  =      4" in out
        assert "R2  =     12" in out

    def test_wrong_argument_count(self, capsys):
        assert run_main(["only-one"]) == 1
        assert "usage" in capsys.readouterr().err.lower()

    def test_missing_input_file(self, paths, capsys):
        infile, outfile = paths
        assert run_main([str(infile), str(outfile)]) == 1
        assert "ERROR: cannot read" in capsys.readouterr().err
        assert not outfile.exists()

    def test_malformed_input(self, paths, capsys):
        infile, outfile = paths
        infile.write_text("0 0 0\n")
        assert run_main([str(infile), str(outfile)]) == 1
        err = capsys.readouterr().err
        assert "ERROR:" in err
        assert "Unexpected end of input" in err

    def test_cycle_budget(self, paths, make_input, capsys):
        infile, outfile = paths
        infile.write_text(make_input(program=[(JMP, 0, 0, 0), (HLT, 0, 0, 0)]))
        assert run_main([str(infile), str(outfile), "--max-cycles", "50"]) == 1
        assert "max cycles (50)" in capsys.readouterr().err
        assert outfile.exists()

    def test_runtime_error_still_dumps(self, paths, make_input, capsys):
        infile, outfile = paths
        infile.write_text(make_input(regs={1: 5},
                                     program=[(Opcode.LD, 0, 1, 1),
                                              (HLT, 0, 0, 0)]))
        assert run_main([str(infile), str(outfile)]) == 1
        assert "Runtime error" in capsys.readouterr().err
        assert len(outfile.read_text().splitlines()) == 1024

    def test_trace_flag(self, paths, make_input, capsys):
        infile, outfile = paths
        infile.write_text(make_input(program=[(ADDI, 1, 1, 1), (HLT, 0, 0, 0)]))
        assert run_main([str(infile), str(outfile), "--trace"]) == 0
        err = capsys.readouterr().err
        assert "PC=000 IR=1111" in err
        assert "PC=002 IR=E000" in err
        assert "Halted after 2 cycles." in err

    def test_no_trace_by_default(self, paths, make_input, capsys):
        infile, outfile = paths
        infile.write_text(make_input(program=[(HLT, 0, 0, 0)]))
        assert run_main([str(infile), str(outfile)]) == 0
        assert "PC=" not in capsys.readouterr().err
