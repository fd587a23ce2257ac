from debupgrader.services.reboot import RebootService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeOperator:
    def __init__(self, answer=True):
        self.answer = answer
        self.countdowns = []
        self.questions = []

    def confirm(self, question, default=False):
        self.questions.append(question)
        return self.answer

    def countdown(self, seconds, message):
        self.countdowns.append(seconds)


class RecordingRunCmd:
    def __init__(self):
        self.calls = []

    def __call__(self, cmd, check=True, **_kwargs):
        self.calls.append(list(cmd))


def build_service(answer=True):
    operator = FakeOperator(answer)
    run_cmd = RecordingRunCmd()
    return RebootService(DummyLogger(), DummyConsole(), operator, run_cmd), operator, run_cmd


def test_auto_policy_counts_down_then_reboots():
    service, operator, run_cmd = build_service()

    assert service.apply("auto", 10) is True
    assert operator.countdowns == [10]
    assert run_cmd.calls == [["reboot"]]


def test_prompt_policy_respects_operator_answer():
    service, operator, run_cmd = build_service(answer=False)

    assert service.apply("prompt", 10) is False
    assert operator.questions
    assert run_cmd.calls == []


def test_skip_policy_never_reboots():
    service, operator, run_cmd = build_service()

    assert service.apply("skip", 10) is False
    assert operator.countdowns == []
    assert run_cmd.calls == []
