"""Tests for the omicswas command-line interface."""

import io
import json

import pandas as pd
import pytest

from omicswas.cli import create_parser, main, merge_cli_config, read_feature_list, read_table


@pytest.mark.unit
class TestParser:
    """Argument parsing."""

    def test_owas_defaults(self):
        args = create_parser().parse_args(["owas", "-i", "d.csv", "--var", "pfas", "--omics", "m1"])
        assert args.command == "owas"
        assert args.var == ["pfas"]
        assert args.var_exposure_or_outcome == "exposure"
        assert args.conf_int is None
        assert args.test_data_quality is None
        assert args.output_file is None

    def test_flags_override_config(self):
        args = create_parser().parse_args(
            [
                "owas",
                "-i",
                "d.csv",
                "--var",
                "pfas",
                "--conf-int",
                "--no-quality-check",
                "--confidence-level",
                "0.9",
                "--family",
                "binomial",
                "--workers",
                "2",
            ]
        )
        merged = merge_cli_config({"conf_int": False, "family": "gaussian", "n_workers": 1}, args)
        assert merged["conf_int"] is True
        assert merged["test_data_quality"] is False
        assert merged["confidence_level"] == 0.9
        assert merged["family"] == "binomial"
        assert merged["n_workers"] == 2

    def test_qgcomp_no_quantize(self):
        args = create_parser().parse_args(
            ["qgcomp", "-i", "d.csv", "--expnms", "a", "b", "--no-quantize", "--n-boot", "50"]
        )
        merged = merge_cli_config({"qgcomp_q": 4, "qgcomp_n_boot": 200}, args)
        assert merged["qgcomp_q"] is None
        assert merged["qgcomp_n_boot"] == 50

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])


@pytest.mark.unit
class TestReaders:
    """Input files."""

    def test_read_table_by_extension(self, cross_sectional_df, write_table):
        csv_path = write_table(cross_sectional_df, "data.csv")
        tsv_path = write_table(cross_sectional_df, "data.tsv")
        pd.testing.assert_frame_equal(read_table(str(csv_path)), read_table(str(tsv_path)))

    def test_read_table_sniffs_delimiter(self, tmp_path):
        path = tmp_path / "data.txt"
        path.write_text("a;b\n1;2\n3;4\n")
        assert list(read_table(str(path)).columns) == ["a", "b"]

    def test_read_feature_list(self, tmp_path):
        path = tmp_path / "features.txt"
        path.write_text("# metabolites\nmet_1\n\nmet_2\n")
        assert read_feature_list(str(path)) == ["met_1", "met_2"]


@pytest.mark.unit
class TestMain:
    """End-to-end runs of main()."""

    def test_owas_writes_tsv(self, cross_sectional_df, write_table, tmp_path):
        data = write_table(cross_sectional_df)
        features = tmp_path / "features.txt"
        features.write_text("met_1\nmet_2\n")
        out = tmp_path / "out" / "results.tsv"

        code = main(
            [
                "owas",
                "-i",
                str(data),
                "--var",
                "pfas",
                "--omics",
                "met_3",
                "--omics-file",
                str(features),
                "--covars",
                "age",
                "sex",
                "--conf-int",
                "-o",
                str(out),
            ]
        )
        assert code == 0
        result = pd.read_csv(out, sep="\t")
        assert list(result["feature_name"]) == ["met_3", "met_1", "met_2"]
        assert {"conf_low", "conf_high", "adjusted_pval", "threshold"} <= set(result.columns)

    def test_stdout_output(self, cross_sectional_df, write_table, capsys):
        data = write_table(cross_sectional_df)
        code = main(["owas", "-i", str(data), "--var", "pfas", "--omics", "met_1", "-o", "-"])
        assert code == 0
        result = pd.read_csv(io.StringIO(capsys.readouterr().out), sep="\t")
        assert len(result) == 1

    def test_clogit(self, matched_df, write_table, tmp_path):
        data = write_table(matched_df, "matched.tsv")
        out = tmp_path / "clogit.tsv"
        code = main(
            [
                "clogit",
                "-i",
                str(data),
                "--cc-status",
                "case",
                "--cc-set",
                "set_id",
                "--omics",
                "met_1",
                "met_2",
                "-o",
                str(out),
            ]
        )
        assert code == 0
        assert len(pd.read_csv(out, sep="\t")) == 2

    def test_config_file_applied(self, cross_sectional_df, write_table, tmp_path):
        data = write_table(cross_sectional_df)
        cfg = tmp_path / "cfg.json"
        cfg.write_text(json.dumps({"conf_int": True}))
        out = tmp_path / "results.tsv"
        code = main(
            ["owas", "-i", str(data), "--var", "pfas", "--omics", "met_1", "-c", str(cfg), "-o", str(out)]
        )
        assert code == 0
        assert "conf_low" in pd.read_csv(out, sep="\t").columns

    def test_missing_column_exit_code(self, cross_sectional_df, write_table, tmp_path):
        data = write_table(cross_sectional_df)
        code = main(
            ["owas", "-i", str(data), "--var", "pfas", "--omics", "met_1", "--covars", "bmi"]
        )
        assert code == 1

    def test_missing_input_exit_code(self, tmp_path):
        code = main(["owas", "-i", str(tmp_path / "absent.csv"), "--var", "x", "--omics", "y"])
        assert code == 1
