import pytest

from editlab.models import ProjectContext
from editlab.planning import PlanGenerator, PlanParseError, extract_plan_payload, parse_plan
from editlab.router import OracleError

from conftest import StubOracle

PLAN = '[{"file": "utils/trim.txt", "action": "create", "explanation": "add helper"}]'


def test_parse_plain_array():
    ops = parse_plan(PLAN)

    assert len(ops) == 1
    assert ops[0].file == "utils/trim.txt"
    assert ops[0].action == "create"
    assert ops[0].explanation == "add helper"


def test_payload_found_inside_prose_and_fences():
    raw = f"Sure! Here is the plan:\n```json\n{PLAN}\n```\nLet me know [if] you need more."

    assert parse_plan(raw)[0].file == "utils/trim.txt"


def test_trailing_text_with_brackets_is_ignored():
    raw = f"Plan: {PLAN} (see [1] for details)"

    assert extract_plan_payload(raw) == PLAN


def test_explanation_is_optional():
    ops = parse_plan('[{"file": "a.py", "action": "modify"}]')

    assert ops[0].explanation == ""


def test_empty_plan_is_valid():
    assert parse_plan("Nothing to do: []") == []


@pytest.mark.parametrize("raw", [
    "I could not decide.",
    '[{"file": "a.py", "action": "modify",]',
    '[{"file": "a.py", "action": "delete"}]',
    '[{"action": "create"}]',
    '[{"file": "", "action": "create"}]',
])
def test_undecodable_plans_raise_with_raw_output(raw):
    with pytest.raises(PlanParseError) as exc:
        parse_plan(raw)

    assert exc.value.raw_output == raw


def test_one_bad_item_fails_the_whole_plan():
    raw = '[{"file": "a.py", "action": "create"}, {"file": "b.py", "action": "rename"}]'

    with pytest.raises(PlanParseError):
        parse_plan(raw)


def test_generator_sends_task_and_context_to_oracle():
    oracle = StubOracle(plan_output=PLAN)
    context = ProjectContext(name="demo", files=["README.md"])

    ops = PlanGenerator(oracle).generate_plan("add input trimming", context)

    assert oracle.plan_calls == ["add input trimming"]
    assert [op.file for op in ops] == ["utils/trim.txt"]


def test_generator_does_not_retry_on_parse_failure():
    oracle = StubOracle(plan_output="not json")

    with pytest.raises(PlanParseError):
        PlanGenerator(oracle).generate_plan("task", ProjectContext())

    assert len(oracle.plan_calls) == 1


def test_generator_wraps_provider_failures():
    class Down(StubOracle):
        def produce_plan(self, task, project_context):
            raise ConnectionError("provider unreachable")

    with pytest.raises(OracleError, match="provider unreachable"):
        PlanGenerator(Down()).generate_plan("task", ProjectContext())
