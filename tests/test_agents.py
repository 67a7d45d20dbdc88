from editlab.agents import strip_code_fence
from editlab.models import Operation, ProjectContext
from editlab.oracle import RouterOracle
from editlab.router import RouterResponse


class FakeRouter:
    """Records calls; replies per role."""

    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    def complete(self, role, messages, **kwargs):
        self.calls.append({"role": role, "messages": messages, **kwargs})
        return RouterResponse(content=self.replies[role], model=f"fake/{role}")


def _user_prompt(call):
    return call["messages"][-1]["content"]


def test_plan_prompt_carries_persona_request_and_context():
    router = FakeRouter({"planner": '[{"file": "a.py", "action": "create"}]'})
    oracle = RouterOracle(router, repo_path="/work/app", persona="Security Expert")
    context = ProjectContext(name="app", language="Python", files=["main.py"], relevant_files=["main.py"])

    raw = oracle.produce_plan("add logging", context)

    assert raw == '[{"file": "a.py", "action": "create"}]'
    prompt = _user_prompt(router.calls[0])
    assert "Security Expert" in prompt
    assert '"add logging"' in prompt
    assert "/work/app" in prompt
    assert "Relevant files for this request: main.py" in prompt
    assert router.calls[0]["temperature"] == 0.1


def test_synthesis_of_new_file_says_so_and_strips_fences():
    router = FakeRouter({"synthesizer": "```python\nprint('hi')\n```"})
    oracle = RouterOracle(router)

    body = oracle.synthesize_content(Operation(file="hi.py", action="create"), None, "say hi")

    assert body == "print('hi')"
    assert "File is new." in _user_prompt(router.calls[0])
    assert "on_chunk" not in router.calls[0]


def test_synthesis_of_existing_file_includes_current_content_and_streams():
    router = FakeRouter({"synthesizer": "x = 2\n"})
    chunks = []

    RouterOracle(router).synthesize_content(
        Operation(file="x.py", action="modify", explanation="bump x"), "x = 1\n", "bump", on_chunk=chunks.append
    )

    call = router.calls[0]
    assert "x = 1" in _user_prompt(call)
    assert "bump x" in _user_prompt(call)
    assert call["on_chunk"] == chunks.append


def test_scan_and_patch_use_security_role():
    router = FakeRouter({"security": "  SAFE \n"})
    oracle = RouterOracle(router)

    assert oracle.scan("print(1)") == "SAFE"
    router.replies["security"] = "```\nsafe_code()\n```"
    assert oracle.patch("eval(x)") == "safe_code()"
    assert [c["role"] for c in router.calls] == ["security", "security"]
    assert "Fix the security issue" in _user_prompt(router.calls[1])


def test_strip_code_fence_leaves_plain_text():
    assert strip_code_fence("plain\n") == "plain\n"
    assert strip_code_fence("```\nfenced\n```\n") == "fenced\n"
