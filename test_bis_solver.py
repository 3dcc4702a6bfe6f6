"""
Tests for bis_solver.py - the command line entry point and exit codes.
"""
import pytest

from bis_solver import (
    main,
    create_parser,
    EXIT_OK,
    EXIT_ERROR,
    EXIT_USAGE,
    EXIT_INFEASIBLE,
    DEBUG_MODEL_PATH,
    objective_gap_warning,
)
from models import Solution


class TestParser:
    """Tests for create_parser()."""

    def test_defaults(self):
        args = create_parser().parse_args(['BLM', '-p', 'gamedata.json'])
        assert args.config_path == 'config.yaml'
        assert args.exclude == []
        assert args.solver == 'cbc'
        assert args.secondary_mode == 'lexicographic'
        assert not args.no_maximize_unweighted
        assert not args.debug

    def test_repeatable_exclude(self):
        args = create_parser().parse_args(['BLM', '-p', 'g.json', '-X', '1', '-X', '2'])
        assert args.exclude == [1, 2]

    def test_solver_name_case_insensitive(self):
        args = create_parser().parse_args(['BLM', '-p', 'g.json', '-s', 'Z3'])
        assert args.solver == 'z3'

    def test_unknown_solver_rejected(self):
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(['BLM', '-p', 'g.json', '-s', 'cplex'])
        assert exc_info.value.code == EXIT_USAGE

    def test_game_path_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(['BLM'])


class TestMain:
    """End-to-end runs of main() on the sample catalog."""

    def test_solves_and_prints_report(self, game_files, capsys):
        game_path, config_path = game_files
        assert main(['BLM', '-p', game_path, '-c', config_path]) == EXIT_OK
        captured = capsys.readouterr()
        out = captured.out
        assert "✓ Loaded 4 items" in out
        assert "Gear:" in out
        assert "Ring of Casting (i340)" in out
        assert "Objective value:" in out
        assert "Result stat weight:" in out
        assert "Solver objective" not in captured.err

    def test_exclusion_reported(self, game_files, capsys):
        game_path, config_path = game_files
        assert main(['BLM', '-p', game_path, '-c', config_path, '-X', '100']) == EXIT_OK
        out = capsys.readouterr().out
        assert "✓ Excluding Casting Hat." in out
        assert "Head      : Casting Hat" not in out

    def test_unknown_exclusion_warns(self, game_files, capsys):
        game_path, config_path = game_files
        assert main(['BLM', '-p', game_path, '-c', config_path, '-X', '999']) == EXIT_OK
        assert "⚠ Unknown id 999, ignoring." in capsys.readouterr().err

    def test_min_above_max_is_usage_error(self, game_files, capsys):
        game_path, config_path = game_files
        code = main(['BLM', '-p', game_path, '-c', config_path, '-m', '350', '-M', '340'])
        assert code == EXIT_USAGE
        assert "✗" in capsys.readouterr().err

    def test_unknown_job(self, game_files, capsys):
        game_path, config_path = game_files
        assert main(['NIN', '-p', game_path, '-c', config_path]) == EXIT_ERROR
        assert "Unknown job" in capsys.readouterr().err

    def test_job_without_config(self, game_files, capsys):
        game_path, config_path = game_files
        assert main(['WHM', '-p', game_path, '-c', config_path]) == EXIT_ERROR
        assert "No configuration for job WHM" in capsys.readouterr().err

    def test_no_items_in_range(self, game_files):
        game_path, config_path = game_files
        assert main(['BLM', '-p', game_path, '-c', config_path, '-M', '300']) == EXIT_ERROR

    def test_infeasible_requirements(self, game_files, tmp_path, capsys):
        game_path, _ = game_files
        config_path = tmp_path / 'strict.yaml'
        config_path.write_text(
            "jobConfigs:\n  BLM:\n    weights: {Intelligence: 1}\n"
            "    statRequirements: {Spell Speed: 10000}\n",
            encoding='utf-8',
        )
        assert main(['BLM', '-p', game_path, '-c', str(config_path)]) == EXIT_INFEASIBLE
        assert "No feasible loadout under current constraints" in capsys.readouterr().err

    def test_debug_writes_model(self, game_files, tmp_path, monkeypatch):
        game_path, config_path = game_files
        monkeypatch.chdir(tmp_path)
        assert main(['BLM', '-p', game_path, '-c', config_path, '-d']) == EXIT_OK
        assert (tmp_path / DEBUG_MODEL_PATH).exists()
        assert (tmp_path / 'model_secondary.lp').exists()


class TestObjectiveGapWarning:
    """Tests for objective_gap_warning()."""

    def make_solution(self, objective_value, weight):
        return Solution(gear={}, melds=(), food=None, relic=(), allocatable_stats={},
                        total_stats={}, objective_value=objective_value, weight=weight)

    def test_silent_when_values_agree(self):
        assert objective_gap_warning(self.make_solution(339.74, 339.74)) is None
        assert objective_gap_warning(self.make_solution(339.74, 339.74 + 1e-6)) is None

    def test_reports_disagreement(self):
        message = objective_gap_warning(self.make_solution(340.0, 339.5))
        assert message == "Solver objective 340.0000 differs from recomputed weight 339.5000"
