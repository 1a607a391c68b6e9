import numpy as np
import pytest

from formula_ast import ASTDivide
from sd_config import EngineConfiguration
from sd_errors import ModelStillChangeableException
from sd_model import Model
from sd_simulation import ModelExecution


@pytest.fixture
def locked_inflow(inflow_model):
    model = inflow_model[0]
    model.validate_model_and_set_unchangeable()
    return inflow_model


def test_execution_requires_locked_model(inflow_model):
    with pytest.raises(ModelStillChangeableException):
        ModelExecution(inflow_model[0])


def test_run_records_every_round(locked_inflow):
    model, level, rate, one, source = locked_inflow
    execution = ModelExecution(model)

    results = execution.run(5)

    assert results["model_name"] == "Inflow"
    assert results["rounds"] == 5
    np.testing.assert_array_equal(results["time"], np.arange(6))
    np.testing.assert_array_equal(results["levels"]["Stock"], [0, 1, 2, 3, 4, 5])
    np.testing.assert_array_equal(results["rates"]["Inflow"], [0, 1, 1, 1, 1, 1])
    assert results["auxiliaries"] == {}
    np.testing.assert_array_equal(execution.get_level_history(level), [0, 1, 2, 3, 4, 5])
    np.testing.assert_array_equal(execution.get_history(rate), [0, 1, 1, 1, 1, 1])


def test_runs_continue_where_the_last_one_stopped(locked_inflow):
    model, level, *_ = locked_inflow
    execution = ModelExecution(model)
    execution.run(2)
    results = execution.run(3)

    assert results["rounds"] == 5
    assert results["levels"]["Stock"][-1] == 5.0
    assert level.get_current_value() == 5.0


def test_default_rounds_come_from_config(locked_inflow):
    model = locked_inflow[0]
    execution = ModelExecution(model, EngineConfiguration(default_rounds=3))
    assert execution.run()["rounds"] == 3


def test_invalid_round_counts(locked_inflow):
    model = locked_inflow[0]
    execution = ModelExecution(model, EngineConfiguration(default_rounds=5, max_rounds=10))

    with pytest.raises(ValueError):
        execution.run(0)
    with pytest.raises(ValueError):
        execution.run(11)
    with pytest.raises(TypeError):
        execution.run(2.5)


def test_progress_callback(locked_inflow):
    model = locked_inflow[0]
    execution = ModelExecution(model, EngineConfiguration(progress_interval=2))
    seen = []

    execution.run(5, progress_callback=lambda current: seen.append(current.round))

    assert seen == [2, 4]


def test_level_columns_are_sorted_by_name():
    model = Model("Sorted")
    zeta = model.create_level_node("Zeta", 1.0)
    alpha = model.create_level_node("Alpha", 2.0)
    source = model.create_source_sink_node()
    rate = model.create_rate_node("Rate")
    model.set_formula(rate, zeta)
    model.add_flow_from_source_sink_node_to_rate_node(source, rate)
    model.add_flow_from_rate_node_to_level_node(rate, alpha)
    model.validate_model_and_set_unchangeable()

    execution = ModelExecution(model)

    assert list(execution.results["levels"]) == ["Alpha", "Zeta"]
    assert execution.level_nodes == [alpha, zeta]


def test_repeated_names_get_distinct_labels():
    model = Model()
    first = model.create_level_node("Stock", 1.0)
    second = model.create_level_node("Stock", 2.0)
    model.validate_model_and_set_unchangeable()

    with pytest.warns(UserWarning, match="no rate nodes"):
        execution = ModelExecution(model)

    assert list(execution.results["levels"]) == ["Stock", "Stock [2]"]
    np.testing.assert_array_equal(execution.get_level_history(second), [2.0])


def test_non_finite_levels_are_reported(model):
    level = model.create_level_node("Level", 0.0)
    source = model.create_source_sink_node()
    rate = model.create_rate_node("Rate")
    one = model.create_constant_node("One", 1.0)
    zero = model.create_constant_node("Zero", 0.0)
    model.set_formula(rate, ASTDivide(one, zero))
    model.add_flow_from_source_sink_node_to_rate_node(source, rate)
    model.add_flow_from_rate_node_to_level_node(rate, level)
    model.validate_model_and_set_unchangeable()

    execution = ModelExecution(model)
    with pytest.warns(UserWarning, match="non-finite"):
        execution.run(3)
    assert np.isinf(execution.results["levels"]["Level"][-1])


def test_results_as_lists(locked_inflow):
    execution = ModelExecution(locked_inflow[0])
    execution.run(2)

    results = execution.results_as_lists()

    assert results["time"] == [0, 1, 2]
    assert results["levels"] == {"Stock": [0.0, 1.0, 2.0]}
    assert results["rates"] == {"Inflow": [0.0, 1.0, 1.0]}


def test_get_history_of_unknown_node(locked_inflow, model):
    execution = ModelExecution(locked_inflow[0])
    other = model.create_level_node("Other", 0.0)
    with pytest.raises(ValueError):
        execution.get_history(other)
    with pytest.raises(TypeError):
        execution.get_level_history(locked_inflow[2])

# ===============================================================================
# Reporting
# ===============================================================================

def test_plot_returns_figure_and_saves(locked_inflow, tmp_path):
    model, level, *_ = locked_inflow
    execution = ModelExecution(model)
    execution.run(4)
    path = tmp_path / "levels.png"

    fig = execution.plot(save_path=str(path), show=False)

    assert path.exists()
    lines = fig.axes[0].get_lines()
    assert [line.get_label() for line in lines] == ["Stock"]
    np.testing.assert_array_equal(lines[0].get_ydata(), [0, 1, 2, 3, 4])


def test_plot_selected_levels(locked_inflow):
    model, level, *_ = locked_inflow
    execution = ModelExecution(model)

    fig = execution.plot(levels=[level], show=False)
    assert len(fig.axes[0].get_lines()) == 1

    with pytest.raises(ValueError):
        execution.plot(levels=["Missing"], show=False)


def test_print_summary(locked_inflow, capsys):
    execution = ModelExecution(locked_inflow[0])
    execution.run(3)
    execution.print_summary()

    out = capsys.readouterr().out
    assert "EXECUTION SUMMARY: Inflow" in out
    assert "Rounds: 3" in out
    assert "Stock: start=0.0000 current=3.0000" in out
