from consent_rewards import demo


def test_demo_runs_end_to_end(capsys):
    demo.main()
    out = capsys.readouterr().out

    assert "[main] Booted with 8 partners." in out
    assert "notes.pdf -> error" in out
    assert "second redemption same: True" in out
    assert "[main] Reloaded 1 voucher(s) and 3 dataset record(s) from storage." in out
