import pytest
from Bio import SeqIO

from mcclintock.errors import ExternalToolFailure
from mcclintock.naming import RunNames
from mcclintock.reference import ReferencePreparer
from mcclintock.staging import DirectoryStager
from mcclintock.utils.gff_utils import parse_gff

NAMES = RunNames("Dmel", "S1")


def test_prepare_builds_reference_bundle(make_config, fake_runner):
    config = make_config()
    layout = DirectoryStager(config).stage(NAMES)

    bundle = ReferencePreparer(config, fake_runner).prepare(layout)

    assert fake_runner.stages == ["samtools faidx", "bwa index"]
    assert fake_runner.call("samtools faidx")['cmd'] == ['samtools', 'faidx', str(layout.reference_genome)]
    assert fake_runner.call("bwa index")['cmd'] == ['bwa', 'index', str(layout.reference_genome)]

    assert bundle.te_count == 2
    assert bundle.te_locations == layout.te_locations
    assert [r.attribute_string for r in parse_gff(layout.te_locations)] == [
        "ID=TE1;Name=TE1;Alias=TE1",
        "ID=TE2;Name=TE2;Alias=TE2",
    ]
    assert [r.id for r in SeqIO.parse(str(bundle.all_te_seqs), "fasta")] == ["TE1", "TE2"]
    headers = [line for line in bundle.reloca_te_seqs.read_text().splitlines() if line.startswith(">")]
    assert headers == [">roo Gypsy consensus TSD=UNK", ">1731 TSD=UNK"]
    # consensus used by the other tools is unchanged
    assert ">roo Gypsy consensus\n" in bundle.consensus_te_seqs.read_text()


def test_bedtools_is_used_when_selected(make_config, fake_runner):
    config = make_config(extract_tool="bedtools")
    layout = DirectoryStager(config).stage(NAMES)

    ReferencePreparer(config, fake_runner).prepare(layout)
    getfasta = fake_runner.call("bedtools getfasta")
    assert getfasta['cmd'][-1] == str(layout.all_te_seqs)
    assert str(layout.te_locations) in getfasta['cmd']


def test_index_failure_stops_preparation(make_config, failing_runner):
    config = make_config()
    layout = DirectoryStager(config).stage(NAMES)
    runner = failing_runner("bwa index")

    with pytest.raises(ExternalToolFailure):
        ReferencePreparer(config, runner).prepare(layout)
    assert not layout.all_te_seqs.exists()
