"""Shared fixtures: a small yeast-like annotation with inline and file datasets."""

import numpy as np
import pytest

import pybiotoolbox as pb

GFF_TEMPLATE = """\
##gff-version 3
##sequence-region chrI 1 10000
##sequence-region chrII 1 5000
chrI\tsgd\tgene\t1000\t2000\t.\t+\t.\tID=geneA;Name=geneA
chrI\tsgd\tmRNA\t1000\t2000\t.\t+\t.\tID=geneA_mRNA;Parent=geneA
chrI\tsgd\texon\t1000\t1200\t.\t+\t.\tID=exA1;Parent=geneA_mRNA
chrI\tsgd\texon\t1801\t2000\t.\t+\t.\tID=exA2;Parent=geneA_mRNA
chrI\tsgd\tgene\t3001\t5000\t.\t-\t.\tID=geneB;Name=geneB;Alias=YBX1
chrI\tsgd\tgene\t6001\t6500\t.\t+\t.\tID=geneC;Name=geneC;orf_classification=Dubious
chrI\tsgd\tgene\t7001\t7500\t.\t+\t.\tID=dupA;Name=dup
chrI\tsgd\tgene\t8001\t8500\t.\t-\t.\tID=dupB;Name=dup
chrII\tsgd\tgene\t101\t900\t.\t+\t.\tID=geneD;Name=geneD
chrI\tarray\tscores\t700\t700\t1.0\t.\t.\tName=p8
chrI\tarray\tscores\t1100\t1100\t2.0\t+\t.\tName=p1
chrI\tarray\tscores\t1500\t1500\t4.0\t.\t.\tName=p2
chrI\tarray\tscores\t1900\t1900\t8.0\t-\t.\tName=p3
chrI\tarray\tscores\t4000\t4000\t3.0\t-\t.\tName=p4
chrI\tarray\tscores\t4500\t4500\t5.0\t+\t.\tName=p5
chrI\tarray\tscores\t5200\t5200\t7.0\t.\t.\tName=p7
chrI\tarray\tscores\t6700\t6700\t10.0\t.\t.\tName=p6
chrI\tarray\tscores\t7200\t7200\t6.0\t.\t.\tName=p9
chrI\tarray\tratio_log2\t1200\t1200\t1.0\t.\t.\tName=r1
chrI\tarray\tratio_log2\t1300\t1300\t3.0\t.\t.\tName=r2
chrI\tseq\treads\t1490\t1510\t1.0\t.\t.\tName=read1
chrI\tseq\treads\t1495\t1505\t3.0\t.\t.\tName=read2
chrI\tseq\treads\t1600\t1600\t5.0\t.\t.\tName=read3
chrI\twig\tnuc\t1\t10000\t.\t.\t.\tName=nuc_chrI;wigfile={nuc}
chrI\twig\ttx_f\t1\t10000\t.\t+\t.\tName=tx_f_chrI;wigfile={fwd}
chrI\twig\ttx_r\t1\t10000\t.\t-\t.\tName=tx_r_chrI;wigfile={rev}
"""


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run every test without any user configuration file."""
    monkeypatch.delenv("BIOTOOLBOX", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    saved = dict(pb.CONFIG)
    pb.gconfig_reset()
    yield
    pb.gconfig_reset()
    pb.CONFIG.clear()
    pb.CONFIG.update(saved)


@pytest.fixture
def wig_files(tmp_path):
    """Binary wiggle files: values 10, 20, ... 110 every 100 bp from 1001."""
    data = tmp_path / "data"
    data.mkdir()
    nuc = pb.write_wig(data / "nuc.wib", "chrI", 1001, np.arange(10, 120, 10),
                       step=100, min_val=0, max_val=254)
    fwd = pb.write_wig(data / "fwd.wib", "chrI", 1001, [5.0] * 10, step=100,
                       min_val=0, max_val=254)
    rev = pb.write_wig(data / "rev.wib", "chrI", 1001, [50.0] * 10, step=100,
                       min_val=0, max_val=254)
    return {"nuc": nuc, "fwd": fwd, "rev": rev}


@pytest.fixture
def gff_path(tmp_path, wig_files):
    path = tmp_path / "annotation.gff3"
    path.write_text(GFF_TEMPLATE.format(**wig_files), encoding="utf-8")
    return path


@pytest.fixture
def db(gff_path):
    return pb.gdb_open(gff_path)
