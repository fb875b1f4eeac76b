"""Tests for the feature, genome, point and position-map collectors."""

import math

import numpy as np
import pandas as pd
import pytest

import pybiotoolbox as pb


def _genes(*names, type="gene"):
    return pd.DataFrame({"Name": list(names), "Type": [type] * len(names)})


def _column(df, name):
    return df[name].tolist()


class TestGfeatureDataset:
    """Tests for gfeature_dataset."""

    def test_sense_mean(self, db):
        """Only same-strand and unstranded points count for the sense strand."""
        out = pb.gfeature_dataset(_genes("geneA"), "scores", db=db, method="mean", strand="sense")
        assert _column(out, "scores") == pytest.approx([3.0])

    def test_strand_modes(self, db):
        genes = _genes("geneA", "geneB")
        none = pb.gfeature_dataset(genes, "scores", db=db)
        sense = pb.gfeature_dataset(genes, "scores", db=db, strand="sense")
        anti = pb.gfeature_dataset(genes, "scores", db=db, strand="antisense")
        assert _column(none, "scores") == pytest.approx([14.0 / 3, 4.0])
        assert _column(sense, "scores") == pytest.approx([3.0, 3.0])
        assert _column(anti, "scores") == pytest.approx([6.0, 5.0])

    def test_no_data_is_nan(self, db):
        out = pb.gfeature_dataset(_genes("geneC"), "scores", db=db)
        assert math.isnan(out["scores"].iloc[0])

    def test_count_of_empty_region_is_zero(self, db):
        out = pb.gfeature_dataset(_genes("geneA", "geneC"), "scores", db=db, method="count",
                                  strand="sense")
        assert _column(out, "scores") == [2.0, 0.0]

    def test_input_not_modified(self, db):
        genes = _genes("geneA")
        out = pb.gfeature_dataset(genes, "scores", db=db)
        assert list(genes.columns) == ["Name", "Type"]
        assert list(out.columns) == ["Name", "Type", "scores"]

    def test_class_column(self, db):
        genes = pd.DataFrame({"name": ["geneA"], "Class": ["gene"]})
        out = pb.gfeature_dataset(genes, "scores", db=db, method="max")
        assert _column(out, "scores") == [8.0]

    def test_log2_inferred_from_name(self, db):
        out = pb.gfeature_dataset(_genes("geneA"), "ratio_log2", db=db)
        assert _column(out, "ratio_log2") == pytest.approx([math.log2(5)])

    def test_log2_disabled(self, db):
        out = pb.gfeature_dataset(_genes("geneA"), "ratio_log2", db=db, log2=False)
        assert _column(out, "ratio_log2") == pytest.approx([2.0])

    def test_merged_datasets(self, db):
        out = pb.gfeature_dataset(_genes("geneA"), "scores&ratio_log2", db=db, log2=False)
        assert _column(out, "scores&ratio_log2") == pytest.approx([3.6])

    def test_several_datasets(self, db):
        out = pb.gfeature_dataset(_genes("geneA"), ["scores", "nuc"], db=db)
        assert list(out.columns) == ["Name", "Type", "scores", "nuc"]
        assert _column(out, "nuc") == pytest.approx([55.0])

    def test_value_length(self, db):
        out = pb.gfeature_dataset(_genes("geneA"), "reads", db=db, value="length")
        assert _column(out, "reads") == pytest.approx([11.0])

    def test_missing_feature_warns_and_continues(self, db):
        with pytest.warns(UserWarning, match="table row 2"):
            out = pb.gfeature_dataset(_genes("geneA", "nope", "geneB"), "scores", db=db)
        values = _column(out, "scores")
        assert values[0] == pytest.approx(14.0 / 3)
        assert math.isnan(values[1])
        assert values[2] == pytest.approx(4.0)

    def test_duplicate_feature_uses_first(self, db):
        with pytest.warns(UserWarning, match="more than one"):
            out = pb.gfeature_dataset(_genes("dup"), "scores", db=db)
        assert _column(out, "scores") == pytest.approx([6.0])

    def test_extend(self, db):
        out = pb.gfeature_dataset(_genes("geneC"), "scores", db=db, extend=250)
        assert _column(out, "scores") == pytest.approx([10.0])

    def test_offsets_follow_strand(self, db):
        out = pb.gfeature_dataset(_genes("geneA", "geneB"), "scores", db=db, start=-500, stop=0)
        assert _column(out, "scores") == pytest.approx([1.0, 7.0])

    def test_subfeature(self, db):
        out = pb.gfeature_dataset(_genes("geneA"), "scores", db=db, subfeature=True)
        assert _column(out, "scores") == pytest.approx([5.0])

    def test_subfeature_count(self, db):
        out = pb.gfeature_dataset(_genes("geneA"), "scores", db=db, method="count", subfeature=True)
        assert _column(out, "scores") == [2.0]

    def test_set_strand(self, db):
        genes = pd.DataFrame({"Name": ["geneA"], "Type": ["gene"], "Strand": [-1]})
        out = pb.gfeature_dataset(genes, "scores", db=db, strand="sense", set_strand=True)
        assert _column(out, "scores") == pytest.approx([6.0])

    def test_set_strand_invalid_value_skips_row(self, db):
        genes = pd.DataFrame({"Name": ["geneA", "geneB"], "Type": ["gene", "gene"], "Strand": ["+", "x"]})
        with pytest.warns(UserWarning, match="table row 2"):
            out = pb.gfeature_dataset(genes, "scores", db=db, strand="sense", set_strand=True)
        values = _column(out, "scores")
        assert values[0] == pytest.approx(3.0)
        assert math.isnan(values[1])

    def test_set_strand_requires_column(self, db):
        with pytest.raises(ValueError, match="Strand column"):
            pb.gfeature_dataset(_genes("geneA"), "scores", db=db, set_strand=True)

    def test_stranded_signal_files(self, db):
        genes = _genes("geneA")
        sense = pb.gfeature_dataset(genes, "tx_f&tx_r", db=db, strand="sense")
        anti = pb.gfeature_dataset(genes, "tx_f&tx_r", db=db, strand="antisense")
        both = pb.gfeature_dataset(genes, "tx_f&tx_r", db=db)
        assert _column(sense, "tx_f&tx_r") == pytest.approx([5.0])
        assert _column(anti, "tx_f&tx_r") == pytest.approx([50.0])
        assert _column(both, "tx_f&tx_r") == pytest.approx([27.5])

    def test_progress_callback(self, db):
        calls = []
        pb.gfeature_dataset(_genes("geneA", "geneB"), "scores", db=db,
                            progress=lambda done, total, pct: calls.append((done, total, pct)))
        assert calls == [(1, 2, 50), (2, 2, 100)]

    def test_text_progress(self, db, capsys):
        pb.gfeature_dataset(_genes("geneA", "geneB"), "scores", db=db, progress="text")
        err = capsys.readouterr().err
        assert "scores: 50%" in err
        assert err.endswith("scores: 100%\n")

    def test_unknown_progress_style(self, db):
        with pytest.raises(ValueError, match="progress style"):
            pb.gfeature_dataset(_genes("geneA"), "scores", db=db, progress="fancy")

    def test_missing_columns(self, db):
        with pytest.raises(ValueError, match="Name and/or Type"):
            pb.gfeature_dataset(pd.DataFrame({"Gene": ["geneA"]}), "scores", db=db)

    def test_missing_dataset(self, db):
        with pytest.raises(ValueError, match="No dataset"):
            pb.gfeature_dataset(_genes("geneA"), "", db=db)

    def test_invalid_method(self, db):
        with pytest.raises(ValueError, match="Unrecognized method"):
            pb.gfeature_dataset(_genes("geneA"), "scores", db=db, method="average")

    def test_conflicting_adjustments(self, db):
        with pytest.raises(ValueError):
            pb.gfeature_dataset(_genes("geneA"), "scores", db=db, extend=100, start=-10, stop=10)


class TestGgenomeDataset:
    """Tests for ggenome_dataset."""

    WINDOWS = pd.DataFrame({"Chromosome": ["chrI", "chrI"], "Start": [1001, 1501], "Stop": [1500, 3000]})

    def test_window_means(self, db):
        out = pb.ggenome_dataset(self.WINDOWS, "scores", db=db)
        assert _column(out, "scores") == pytest.approx([3.0, 8.0])

    def test_windows_are_unstranded(self, db):
        out = pb.ggenome_dataset(self.WINDOWS, "scores", db=db, strand="sense")
        values = _column(out, "scores")
        assert values[0] == pytest.approx(4.0)
        assert math.isnan(values[1])

    def test_file_dataset_without_database(self, wig_files):
        out = pb.ggenome_dataset(self.WINDOWS, "file:" + wig_files["nuc"])
        assert _column(out, "nuc.wib") == pytest.approx([30.0, 85.0])

    def test_file_dataset_is_per_chromosome(self, wig_files):
        windows = pd.DataFrame({"Chromosome": ["chrI", "chrII"], "Start": [1001, 1001], "Stop": [1500, 1500]})
        values = _column(pb.ggenome_dataset(windows, "file:" + wig_files["nuc"]), "nuc.wib")
        assert values[0] == pytest.approx(30.0)
        assert math.isnan(values[1])

    def test_alternative_column_names(self, db):
        windows = pd.DataFrame({"seq_id": ["chrI"], "start": [1001], "end": [1500]})
        out = pb.ggenome_dataset(windows, "scores", db=db, method="sum")
        assert _column(out, "scores") == pytest.approx([6.0])

    def test_invalid_window_warns(self, db):
        windows = pd.DataFrame({"Chromosome": ["chrI"], "Start": [2000], "Stop": [1000]})
        with pytest.warns(UserWarning, match="not a valid region"):
            out = pb.ggenome_dataset(windows, "scores", db=db)
        assert math.isnan(out["scores"].iloc[0])

    def test_missing_columns(self, db):
        with pytest.raises(ValueError, match="Chromosome, Start"):
            pb.ggenome_dataset(pd.DataFrame({"Chromosome": ["chrI"]}), "scores", db=db)

    def test_with_generated_windows(self, db):
        windows = pb.ggenome_windows(db, 5000, chroms=["chrI"])
        out = pb.ggenome_dataset(windows, "scores", db=db, method="count")
        assert _column(out, "scores") == [6.0, 3.0]


class TestGregionScore:
    """Tests for gregion_score."""

    def test_mean(self, db):
        assert pb.gregion_score("scores", "chrI", 1000, 2000, db=db) == pytest.approx(14.0 / 3)

    def test_reversed_coordinates(self, db):
        assert pb.gregion_score("scores", "chrI", 2000, 1000, db=db, method="max") == 8.0

    def test_strand_mode(self, db):
        score = pb.gregion_score("scores", "chrI", 1000, 2000, db=db, strand=1, strand_mode="sense")
        assert score == pytest.approx(3.0)

    def test_no_values(self, db):
        assert pb.gregion_score("scores", "chrII", 1, 5000, db=db) is pb.NULL
        assert pb.gregion_score("scores", "chrII", 1, 5000, db=db, method="count") == 0

    def test_file_dataset(self, wig_files):
        assert pb.gregion_score("file:" + wig_files["nuc"], "chrI", 1000, 2000) == pytest.approx(55.0)

    def test_file_dataset_other_chromosome(self, wig_files):
        assert pb.gregion_score("file:" + wig_files["nuc"], "chrII", 1000, 2000) is pb.NULL

    def test_missing_coordinates(self, db):
        with pytest.raises(ValueError, match="coordinates"):
            pb.gregion_score("scores", "chrI", None, 2000, db=db)

    def test_single_dataset(self, db):
        with pytest.raises(ValueError, match="single dataset"):
            pb.gregion_score(["scores", "reads"], "chrI", 1000, 2000, db=db)

    def test_bigwig_file(self, tmp_path):
        pytest.importorskip("pyBigWig")
        path = pb.write_bigwig(tmp_path / "s.bw", {"chrI": 10000},
                               [("chrI", 1101, 1150, 2.5), ("chrI", 1501, 1600, 4.5)])
        assert pb.gregion_score("file:" + path, "chrI", 1000, 2000) == pytest.approx(3.5)


class TestGregionHash:
    """Tests for gregion_hash."""

    def test_forward_feature(self, db):
        result = pb.gregion_hash("scores", "geneA", "gene", db=db)
        assert result == {100: 2.0, 500: 4.0, 900: 8.0}

    def test_reverse_feature(self, db):
        result = pb.gregion_hash("scores", "geneB", "gene", db=db)
        assert result == {500: 5.0, 1000: 3.0}
        assert list(result) == [500, 1000]

    def test_sense_filter(self, db):
        assert pb.gregion_hash("scores", "geneA", "gene", db=db, strand="sense") == {100: 2.0, 500: 4.0}

    def test_shared_positions(self, db):
        scores = pb.gregion_hash("reads", "geneA", "gene", db=db)
        counts = pb.gregion_hash("reads", "geneA", "gene", db=db, value="count")
        assert scores == {500: 2.0, 600: 5.0}
        assert counts == {500: 2, 600: 1}

    def test_offsets(self, db):
        assert pb.gregion_hash("scores", "geneA", "gene", db=db, start=-500, stop=0) == {-300: 1.0}

    def test_set_strand(self, db):
        result = pb.gregion_hash("scores", "geneA", "gene", db=db, set_strand="-")
        assert result == {100: 8.0, 500: 4.0, 900: 2.0}

    def test_no_data(self, db):
        assert pb.gregion_hash("scores", "geneC", "gene", db=db) == {}

    def test_missing_feature(self, db):
        with pytest.warns(UserWarning, match="not found"):
            assert pb.gregion_hash("scores", "nope", "gene", db=db) is None

    def test_signal_file(self, db):
        result = pb.gregion_hash("nuc", "geneA", "gene", db=db)
        assert list(result) == list(range(1, 1000, 100))
        np.testing.assert_allclose(list(result.values()), np.arange(10, 110, 10))
