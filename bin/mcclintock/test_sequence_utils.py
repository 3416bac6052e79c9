from Bio import SeqIO

from mcclintock.utils.gff_utils import rewrite_te_annotation
from mcclintock.utils.sequence_utils import TSD_UNKNOWN, TECopyExtractor, add_tsd_marker


def test_add_tsd_marker(input_files, tmp_path):
    out = tmp_path / "reloca_te_seqs.fasta"
    count = add_tsd_marker(input_files['consensus_te_seqs'], out)

    assert count == 2
    records = list(SeqIO.parse(str(out), "fasta"))
    assert [r.description for r in records] == [
        f"roo Gypsy consensus {TSD_UNKNOWN}",
        f"1731 {TSD_UNKNOWN}",
    ]
    assert [str(r.seq) for r in records] == ["ACGTACGTAC", "GGGGCCCC"]
    assert all(line.endswith(" TSD=UNK") for line in out.read_text().splitlines() if line.startswith(">"))


def test_biopython_extraction_uses_ids_and_inclusive_coordinates(input_files, tmp_path, fake_runner):
    records = rewrite_te_annotation(input_files['te_locations'])
    out = tmp_path / "all_te_seqs.fasta"

    extractor = TECopyExtractor(input_files['reference_genome'], tool_preference='biopython', runner=fake_runner)
    extractor.extract(input_files['te_locations'], out, records=records)

    sequences = {r.id: str(r.seq) for r in SeqIO.parse(str(out), "fasta")}
    # minus strand copies are not reverse complemented, like bedtools getfasta without -s
    assert sequences == {"TE1": "ACGTACGTAC", "TE2": "GTACGTACGT"}
    assert fake_runner.calls == []


def test_biopython_extraction_skips_unknown_and_truncates(tmp_path, input_files):
    gff = tmp_path / "te.gff"
    gff.write_text(
        "chr3R\tsrc\tte\t13\t30\t.\t+\t.\tID=edge\n"
        "chrX\tsrc\tte\t1\t5\t.\t+\t.\tID=lost\n"
    )
    records = rewrite_te_annotation(gff)
    out = tmp_path / "all.fasta"

    TECopyExtractor(input_files['reference_genome'], tool_preference='biopython').extract(gff, out, records=records)
    sequences = {r.id: str(r.seq) for r in SeqIO.parse(str(out), "fasta")}
    assert sequences == {"edge": "AAAA"}


def test_bedtools_extraction_command(input_files, tmp_path, fake_runner):
    out = tmp_path / "all_te_seqs.fasta"
    extractor = TECopyExtractor(input_files['reference_genome'], tool_preference='bedtools',
                                bedtools_exe='bedtools', runner=fake_runner)
    extractor.extract(input_files['te_locations'], out)

    assert fake_runner.calls[0]['cmd'] == [
        'bedtools', 'getfasta', '-name',
        '-fi', str(input_files['reference_genome']),
        '-bed', str(input_files['te_locations']),
        '-fo', str(out),
    ]


def test_auto_falls_back_to_biopython(input_files):
    extractor = TECopyExtractor(input_files['reference_genome'], tool_preference='auto',
                                bedtools_exe='definitely-not-bedtools')
    assert extractor.tool == 'biopython'
